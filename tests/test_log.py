import logging
import unittest

from apisig.log import MAX_SECRETS, REDACTED, SecretFilter, configure_logging


class TestSecretFilter(unittest.TestCase):

    def setUp(self) -> None:
        SecretFilter.clear_secrets()
        self.addCleanup(SecretFilter.clear_secrets)
        self.filter = SecretFilter()

    def _record(self, msg: str, *args) -> logging.LogRecord:
        return logging.LogRecord('apisig', logging.INFO, __file__, 1, msg, args, None)

    def test_redacts_message_and_args(self) -> None:
        SecretFilter.register_secret('wJalrXUtnFEMI')
        record = self._record('key=wJalrXUtnFEMI %s %d', 'also wJalrXUtnFEMI', 3)

        self.assertTrue(self.filter.filter(record))

        self.assertEqual(record.getMessage(), f'key={REDACTED} also {REDACTED} 3')

    def test_redacts_mapping_args(self) -> None:
        SecretFilter.register_secret('wJalrXUtnFEMI')
        record = self._record('key=%(key)s count=%(count)d', {'key': 'wJalrXUtnFEMI', 'count': 2})

        self.filter.filter(record)

        self.assertEqual(record.getMessage(), f'key={REDACTED} count=2')

    def test_longer_secret_redacted_whole(self) -> None:
        SecretFilter.register_secret('abc')
        SecretFilter.register_secret('abcdef')
        record = self._record('token abcdef')

        self.filter.filter(record)

        self.assertEqual(record.getMessage(), f'token {REDACTED}')

    def test_empty_and_missing_secrets_ignored(self) -> None:
        SecretFilter.register_secret('')
        SecretFilter.register_secret(None)
        record = self._record('nothing to hide')

        self.filter.filter(record)

        self.assertEqual(record.getMessage(), 'nothing to hide')
        self.assertIsNone(SecretFilter._pattern)

    def test_registry_keeps_most_recent_secrets(self) -> None:
        for i in range(MAX_SECRETS * 10):
            SecretFilter.register_secret(f'token-{i:04d}')

        self.assertEqual(len(SecretFilter._secrets), MAX_SECRETS)
        self.assertNotIn('token-0000', SecretFilter._secrets)
        self.assertIn(f'token-{MAX_SECRETS * 10 - 1:04d}', SecretFilter._secrets)

    def test_reused_secret_is_not_evicted(self) -> None:
        SecretFilter.register_secret('long-lived')
        for i in range(MAX_SECRETS - 1):
            SecretFilter.register_secret(f'token-{i}')
        SecretFilter.register_secret('long-lived')
        SecretFilter.register_secret('one-more')

        self.assertIn('long-lived', SecretFilter._secrets)
        self.assertNotIn('token-0', SecretFilter._secrets)


class TestSecretRegistryWithoutFilter(unittest.TestCase):

    def setUp(self) -> None:
        SecretFilter.clear_secrets()
        self.addCleanup(SecretFilter.clear_secrets)

    def test_nothing_is_kept_without_a_filter(self) -> None:
        SecretFilter.register_secret('wJalrXUtnFEMI')

        self.assertEqual(len(SecretFilter._secrets), 0)
        self.assertIsNone(SecretFilter._pattern)


class TestConfigureLogging(unittest.TestCase):

    def setUp(self) -> None:
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level

        def restore() -> None:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

        self.addCleanup(restore)
        self.addCleanup(SecretFilter.clear_secrets)

    def test_single_handler_with_filter(self) -> None:
        configure_logging(logging.DEBUG)
        configure_logging(logging.DEBUG)

        root = logging.getLogger()
        self.assertEqual(len(root.handlers), 1)
        self.assertEqual(root.level, logging.DEBUG)
        self.assertTrue(any(isinstance(f, SecretFilter) for f in root.handlers[0].filters))

    def test_without_filter(self) -> None:
        configure_logging(add_secret_filter=False, format_string='%(message)s')

        handler = logging.getLogger().handlers[0]
        self.assertEqual(handler.filters, [])
        self.assertEqual(handler.formatter._fmt, '%(message)s')


if __name__ == '__main__':
    unittest.main(verbosity=2)
