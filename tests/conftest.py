import io
import random

import pytest
from PIL import Image


def make_noise(width, height, seed=0, mode="RGB"):
    bands = len(mode)
    data = random.Random(seed).randbytes(width * height * bands)
    return Image.frombytes(mode, (width, height), data)


def make_gradient(width, height):
    image = Image.new("RGB", (width, height))
    pixels = image.load()
    for y in range(height):
        for x in range(width):
            pixels[x, y] = (x * 255 // width, y * 255 // height, 128)
    return image


def encode(image, fmt="JPEG", **kwargs):
    buffer = io.BytesIO()
    image.save(buffer, format=fmt, **kwargs)
    return buffer.getvalue()


@pytest.fixture
def noise_jpeg():
    return encode(make_noise(800, 600), "JPEG", quality=95)


@pytest.fixture
def noise_png():
    return encode(make_noise(400, 300), "PNG")


@pytest.fixture
def small_jpeg():
    return encode(make_gradient(400, 300), "JPEG", quality=85)


@pytest.fixture
def transparent_png():
    image = make_noise(300, 300, seed=3, mode="RGBA")
    return encode(image, "PNG")
