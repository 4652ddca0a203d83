"""Tests for lazy import system in discussr.__init__."""

from __future__ import annotations

import importlib
import sys

import pytest


class TestLazyImports:
    """Test PEP 562 lazy loading in discussr.__init__."""

    def test_lazy_import_does_not_eagerly_load(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify that importing discussr does not eagerly load subpackages."""
        # Hide cached discussr modules; monkeypatch restores them afterwards
        for mod in list(sys.modules):
            if mod == "discussr" or mod.startswith("discussr."):
                monkeypatch.delitem(sys.modules, mod)

        importlib.import_module("discussr")

        # Subpackages should not be loaded until accessed
        assert "discussr.core" not in sys.modules
        assert "discussr.models" not in sys.modules
        assert "discussr.services" not in sys.modules
        assert "discussr.nips" not in sys.modules

    def test_lazy_import_resolves_on_access(self) -> None:
        """Verify that lazy attributes resolve correctly."""
        from discussr import Filter
        from discussr.models.filter import Filter as DirectFilter

        assert Filter is DirectFilter

    def test_lazy_import_caches_after_first_access(self) -> None:
        """Verify that resolved attributes are cached in globals."""
        import discussr

        _ = discussr.SignedEvent

        assert "SignedEvent" in vars(discussr)

    def test_lazy_import_invalid_attribute(self) -> None:
        """Verify that invalid attributes raise AttributeError."""
        import discussr

        with pytest.raises(AttributeError, match="no_such_thing"):
            _ = getattr(discussr, "no_such_thing")  # noqa: B009

    def test_all_exports_are_in_lazy_imports(self) -> None:
        """Verify that __all__ and _LAZY_IMPORTS are in sync."""
        import discussr

        assert set(discussr.__all__) == set(discussr._LAZY_IMPORTS)

    def test_dir_returns_all(self) -> None:
        import discussr

        assert dir(discussr) == discussr.__all__

    def test_version_is_accessible(self) -> None:
        """Verify that __version__ is set from package metadata."""
        import discussr

        assert isinstance(discussr.__version__, str)
        assert discussr.__version__
