import importlib.util
from pathlib import Path

from models import Category

VERSIONS = Path(__file__).resolve().parents[1] / "alembic" / "versions"


def _load_revision(filename: str):
    spec = importlib.util.spec_from_file_location(filename[:-3], VERSIONS / filename)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_budget_revision_reuses_existing_category_type() -> None:
    initial = _load_revision("202610190900_initial.py")
    budgets = _load_revision("202610191000_add_budgets.py")

    assert budgets.down_revision == initial.revision
    assert budgets.EXISTING_CATEGORY_ENUM.name == "category"
    assert budgets.EXISTING_CATEGORY_ENUM.create_type is False


def test_revision_category_values_match_model() -> None:
    expected = tuple(member.value for member in Category)
    assert _load_revision("202610190900_initial.py").CATEGORY_VALUES == expected
    assert _load_revision("202610191000_add_budgets.py").CATEGORY_VALUES == expected
