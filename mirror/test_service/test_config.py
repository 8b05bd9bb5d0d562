"""
Tests for service/config.py
"""

from django.test import TestCase, override_settings

from mirror.service.config import (
    get_allowed_mime_types,
    get_convertible_mime_types,
    get_download_attempts,
    get_external_media_strategy,
    get_fresh_url_provider,
    get_job_timeout,
    get_max_bytes_for_class,
    get_timeout_for_class,
)
from mirror.utils import url_base


class ConfigServiceTest(TestCase):
    """Tests for configuration adapter"""

    def test_timeouts(self):
        """Test per-class timeouts"""
        self.assertEqual(get_timeout_for_class('image'), 30)
        self.assertEqual(get_timeout_for_class('file'), 60)

    def test_size_limits(self):
        """Test per-class size ceilings"""
        self.assertEqual(get_max_bytes_for_class('image'), 10 * 1024 * 1024)
        self.assertEqual(get_max_bytes_for_class('file'), 50 * 1024 * 1024)

    @override_settings(MEDIASYNC_IMAGE_MAX_BYTES=1024)
    def test_size_limit_override(self):
        self.assertEqual(get_max_bytes_for_class('image'), 1024)

    def test_allowed_mime_types(self):
        """Test allow-lists per class"""
        self.assertIn('image/webp', get_allowed_mime_types('image'))
        self.assertNotIn('image/tiff', get_allowed_mime_types('image'))
        self.assertIn('application/pdf', get_allowed_mime_types('file'))
        self.assertEqual(get_allowed_mime_types('video'), [])

    def test_convertible_only_for_images(self):
        self.assertIn('image/tiff', get_convertible_mime_types('image'))
        self.assertEqual(get_convertible_mime_types('file'), [])

    def test_download_attempts(self):
        self.assertEqual(get_download_attempts(), 3)

    @override_settings(MEDIASYNC_EXTERNAL_MEDIA_STRATEGY=' Download ')
    def test_strategy_normalized(self):
        """Test strategy value is case and whitespace insensitive"""
        self.assertEqual(get_external_media_strategy(), 'download')

    @override_settings(MEDIASYNC_EXTERNAL_MEDIA_STRATEGY=None)
    def test_strategy_missing(self):
        self.assertEqual(get_external_media_strategy(), 'link')

    def test_no_fresh_url_provider_by_default(self):
        self.assertIsNone(get_fresh_url_provider())

    @override_settings(MEDIASYNC_FRESH_URL_PROVIDER='mirror.utils.url_base')
    def test_fresh_url_provider_imported(self):
        """The provider is loaded from its dotted path"""
        self.assertIs(get_fresh_url_provider(), url_base)

    @override_settings(MEDIASYNC_JOB_TIMEOUT=5)
    def test_job_timeout(self):
        self.assertEqual(get_job_timeout(), 5)
