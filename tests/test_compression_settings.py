"""Tests for compression settings."""

from plume.utils.compression_settings import CompressionSettings
from plume.utils.enums import ImageFormat


class TestCompressionSettings:
    """Test quality and format handling."""

    def test_defaults(self):
        """Test the default lossy WebP settings."""
        settings = CompressionSettings()

        assert settings.quality == 80
        assert settings.lossy is True
        assert settings.output_format is ImageFormat.WEBP

    def test_quality_clamped(self):
        """Test that quality stays within 1-100."""
        assert CompressionSettings(quality=150).quality == 100
        assert CompressionSettings(quality=0).quality == 1
        assert CompressionSettings().with_quality(-5).quality == 1

    def test_lossless_threshold(self):
        """Test that quality 90 and above is lossless."""
        assert CompressionSettings(quality=89).lossy is True
        assert CompressionSettings(quality=90).lossy is False

    def test_toggle_lossy(self):
        """Test switching between the lossy and lossless presets."""
        lossless = CompressionSettings().toggle_lossy()
        assert lossless.quality == 95
        assert lossless.lossy is False
        assert lossless.toggle_lossy().quality == 80

    def test_output_format_resolution(self):
        """Test converting versus keeping the original format."""
        convert = CompressionSettings()
        keep = CompressionSettings(keep_original_format=True)

        assert convert.output_format_for(ImageFormat.PNG) is ImageFormat.WEBP
        assert keep.output_format_for(ImageFormat.PNG) is ImageFormat.PNG
        assert keep.output_format_for("jpg") is ImageFormat.JPEG
