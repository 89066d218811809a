"""Tests for lazy import system in nostrpool.__init__."""

from __future__ import annotations

import importlib
import sys

import pytest


class TestLazyImports:
    """Test PEP 562 lazy loading in nostrpool.__init__."""

    def test_lazy_import_does_not_eagerly_load(self) -> None:
        """Verify that importing nostrpool does not eagerly load subpackages."""
        saved = {mod: sys.modules.pop(mod) for mod in list(sys.modules) if mod.startswith("nostrpool")}
        try:
            importlib.import_module("nostrpool")

            assert "nostrpool.core" not in sys.modules
            assert "nostrpool.models" not in sys.modules
            assert "nostrpool.client" not in sys.modules
            assert "nostrpool.utils" not in sys.modules
        finally:
            for mod in list(sys.modules):
                if mod.startswith("nostrpool"):
                    del sys.modules[mod]
            sys.modules.update(saved)

    def test_lazy_import_resolves_on_access(self) -> None:
        """Verify that lazy attributes resolve correctly."""
        from nostrpool import RelayPool
        from nostrpool.client.pool import RelayPool as DirectRelayPool

        assert RelayPool is DirectRelayPool

    def test_lazy_import_caches_after_first_access(self) -> None:
        """Verify that resolved attributes are cached in globals."""
        import nostrpool

        _ = nostrpool.Filter

        assert "Filter" in vars(nostrpool)

    def test_lazy_import_invalid_attribute(self) -> None:
        """Verify that invalid attributes raise AttributeError."""
        import nostrpool

        with pytest.raises(AttributeError, match="no_such_thing"):
            _ = getattr(nostrpool, "no_such_thing")  # noqa: B009

    def test_all_exports_are_in_lazy_imports(self) -> None:
        """Verify that __all__ and _LAZY_IMPORTS are in sync."""
        import nostrpool

        assert set(nostrpool.__all__) == set(nostrpool._LAZY_IMPORTS)

    def test_dir_returns_all(self) -> None:
        """Verify that dir(nostrpool) returns __all__."""
        import nostrpool

        assert dir(nostrpool) == nostrpool.__all__

    def test_version_is_accessible(self) -> None:
        """Verify that __version__ is set from package metadata."""
        import nostrpool

        assert isinstance(nostrpool.__version__, str)
        assert nostrpool.__version__
