import importlib.util
import tempfile
import unittest
from pathlib import Path

_SCRIPT = Path(__file__).resolve().parent.parent / 'scripts' / 'bump_version.py'
_spec = importlib.util.spec_from_file_location('bump_version', _SCRIPT)
bump_version = importlib.util.module_from_spec(_spec)
_spec.loader.exec_module(bump_version)


class TestBumpVersion(unittest.TestCase):

    def test_bump_types(self) -> None:
        self.assertEqual(bump_version.bump_version('1.2.3', 'major'), '2.0.0')
        self.assertEqual(bump_version.bump_version('1.2.3', 'minor'), '1.3.0')
        self.assertEqual(bump_version.bump_version('1.2.3', 'patch'), '1.2.4')

    def test_invalid_bump_type(self) -> None:
        with self.assertRaises(ValueError):
            bump_version.bump_version('1.2.3', 'huge')

    def test_bump_files(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / 'apisig').mkdir()
            (root / 'pyproject.toml').write_text(
                '[project]\nname = "apisig"\nversion = "0.1.0"\n\n[tool.x]\nversion = "9.9.9"\n'
            )
            (root / 'apisig' / '__init__.py').write_text('__version__ = "0.1.0"\n')

            self.assertEqual(bump_version.bump_files(root, 'minor'), ('0.1.0', '0.2.0'))

            self.assertIn('version = "0.2.0"', (root / 'pyproject.toml').read_text())
            self.assertIn('version = "9.9.9"', (root / 'pyproject.toml').read_text())
            self.assertEqual((root / 'apisig' / '__init__.py').read_text(), '__version__ = "0.2.0"\n')

    def test_missing_version(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            (Path(tmp) / 'pyproject.toml').write_text('[project]\nname = "apisig"\n')

            with self.assertRaises(ValueError):
                bump_version.bump_files(Path(tmp), 'patch')


if __name__ == '__main__':
    unittest.main(verbosity=2)
