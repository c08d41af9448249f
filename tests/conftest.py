"""Shared test fixtures for perceptual search tests."""

import numpy as np
import cv2
import pytest

from perceptual_search.models import DecodedImage, FingerprintParams, ImageInfo


@pytest.fixture
def red_square_image():
    """Generate a 200x200 red square on white background."""
    img = np.ones((200, 200, 3), dtype=np.uint8) * 255
    img[40:160, 40:160] = [200, 30, 30]  # Red square
    return img


@pytest.fixture
def blue_circle_image():
    """Generate a 200x200 blue circle on white background."""
    img = np.ones((200, 200, 3), dtype=np.uint8) * 255
    cv2.circle(img, (100, 100), 60, (30, 30, 200), -1)
    return img


@pytest.fixture
def solid_gray_image():
    """Generate a 64x64 uniform mid-gray image."""
    return np.full((64, 64, 3), 128, dtype=np.uint8)


@pytest.fixture
def noise_image():
    """Generate a 200x200 random noise image."""
    rng = np.random.RandomState(42)
    return rng.randint(0, 255, (200, 200, 3), dtype=np.uint8)


@pytest.fixture
def small_params():
    """Parameters giving 16-bit fingerprints (4x4 structural blocks)."""
    return FingerprintParams(grid_size=20, block_size=4)


def make_decoded(name, pixels):
    return DecodedImage(info=ImageInfo(name=name, size_bytes=int(pixels.nbytes)),
                        pixels=pixels)
