from PIL import Image

from imgfit.sharpen import pad_edges, sharpen


def test_uniform_image_unchanged():
    image = Image.new("RGB", (8, 6), (120, 60, 200))
    result = sharpen(image)
    assert result.size == (8, 6)
    assert result.getcolors() == [(48, (120, 60, 200))]


def test_center_and_neighbour_weights():
    image = Image.new("L", (5, 5), 100)
    image.putpixel((2, 2), 0)
    result = sharpen(image)
    assert result.getpixel((2, 2)) == 0
    assert result.getpixel((1, 2)) == 125
    assert result.getpixel((2, 3)) == 125
    assert result.getpixel((1, 1)) == 100


def test_output_clamped_to_range():
    image = Image.new("L", (5, 5), 0)
    image.putpixel((2, 2), 200)
    result = sharpen(image)
    assert result.getpixel((2, 2)) == 255
    assert result.getpixel((2, 1)) == 0


def test_edges_replicate_instead_of_wrapping():
    image = Image.new("L", (3, 3), 0)
    for y in range(3):
        image.putpixel((0, y), 100)
    result = sharpen(image)
    assert result.getpixel((0, 0)) == 125
    assert result.getpixel((0, 1)) == 125
    assert result.getpixel((1, 1)) == 0
    assert result.getpixel((2, 1)) == 0


def test_alpha_channel_untouched():
    image = Image.new("RGBA", (4, 4), (10, 20, 30, 255))
    image.putpixel((1, 1), (200, 200, 200, 40))
    result = sharpen(image)
    assert result.mode == "RGBA"
    assert list(result.getchannel("A").getdata()) == list(image.getchannel("A").getdata())


def test_source_not_modified():
    image = Image.new("L", (5, 5), 0)
    image.putpixel((2, 2), 100)
    before = list(image.getdata())
    sharpen(image)
    assert list(image.getdata()) == before


def test_pad_edges_repeats_border():
    image = Image.new("L", (2, 2))
    image.putdata([1, 2, 3, 4])
    padded = pad_edges(image)
    assert padded.size == (4, 4)
    assert list(padded.getdata()) == [
        1, 1, 2, 2,
        1, 1, 2, 2,
        3, 3, 4, 4,
        3, 3, 4, 4,
    ]
