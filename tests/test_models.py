"""Tests for bulkload.models."""

from decimal import Decimal

from bulkload.models import (
    AssetLedgerEntry,
    CommitResult,
    ConflictReport,
    ImageReferenceReport,
    InternalDuplicate,
    ParseResult,
    ReviewReport,
    StoreConflict,
    UploadResult,
)

from conftest import make_product


class TestParsedProduct:
    def test_has_color_ignores_case(self):
        product = make_product("849", colors=("Rojo",))

        assert product.has_color("rojo")
        assert product.has_color("ROJO")
        assert not product.has_color("Negro")

    def test_image_names_across_variants(self):
        product = make_product("849", colors=("Rojo", "Negro"))
        assert product.image_names() == ["849_rojo_1.webp", "849_negro_1.webp"]

    def test_to_dict(self):
        product = make_product("849", name="Bolsa Luna", row=2)
        d = product.to_dict()

        assert d["sku"] == "849"
        assert d["name"] == "Bolsa Luna"
        assert d["row"] == 2
        assert d["variants"][0]["price"] == "450"
        assert d["variants"][0]["image_names"] == ["849_rojo_1.webp"]


class TestParseResult:
    def test_success_and_counts(self):
        result = ParseResult(products=[make_product("849", colors=("Rojo", "Negro"))])

        assert result.success
        assert result.variant_count == 2

        result.errors.append("Row 2: Color is required")
        assert not result.success


class TestReviewReport:
    def _report(self, **kwargs) -> ReviewReport:
        return ReviewReport(
            parse=kwargs.get("parse", ParseResult(products=[make_product("849")])),
            conflicts=kwargs.get("conflicts", ConflictReport()),
            images=kwargs.get("images", ImageReferenceReport()),
        )

    def test_ready_when_clear(self):
        report = self._report(images=ImageReferenceReport(unused=["extra.webp"]))

        assert report.ready
        assert report.blocking_errors == []

    def test_blocking_errors_in_order(self):
        conflicts = ConflictReport(
            internal_duplicates=[
                InternalDuplicate(sku="849", indices=[0, 1], names=["A", "B"], rows=[2, 5]),
            ],
            store_conflicts=[
                StoreConflict(
                    sku="850",
                    existing_id=9,
                    existing_name="Old",
                    batch_name="New",
                    batch_index=2,
                    row=7,
                ),
            ],
        )
        report = self._report(
            parse=ParseResult(errors=["Row 3: Color is required"]),
            conflicts=conflicts,
            images=ImageReferenceReport(missing=["851_rojo_1.webp"]),
        )

        assert not report.ready
        assert report.blocking_errors == [
            "Row 3: Color is required",
            "SKU 849 is repeated in the file (rows 2, 5)",
            'SKU 850 already exists as "Old" (file row 7: "New")',
            "Missing image: 851_rojo_1.webp "
            "(listed in the spreadsheet but not found in the archive)",
        ]

    def test_to_dict(self):
        d = self._report().to_dict()

        assert d["ready"] is True
        assert d["products"] == 1
        assert d["variants"] == 1
        assert d["conflicts"] == {"internal_duplicates": [], "store_conflicts": []}


class TestCommitResult:
    def test_success(self):
        result = CommitResult(products_created=2, variants_created=3)
        assert result.success

        result.errors.append("Product 850: duplicate key value")
        assert not result.success
        assert result.to_dict()["success"] is False

    def test_upload_results(self):
        result = CommitResult(uploads=[
            UploadResult(filename="a.webp", url="https://cdn/a"),
            UploadResult(filename="b.webp", error="timeout"),
        ])
        d = result.to_dict()

        assert [u["filename"] for u in d["uploads"]] == ["a.webp", "b.webp"]
        assert result.uploads[0].ok
        assert not result.uploads[1].ok


class TestAssetLedgerEntry:
    def test_round_trip(self):
        entry = AssetLedgerEntry(
            checksum="abc",
            url="https://cdn/a",
            filename="a.webp",
            uploaded_at="2026-01-01T00:00:00+00:00",
        )
        assert AssetLedgerEntry.from_dict(entry.to_dict()) == entry


class TestDecimalPrices:
    def test_prices_serialize_as_strings(self):
        product = make_product("849")
        product.variants[0].price = Decimal("450.50")

        assert product.to_dict()["variants"][0]["price"] == "450.50"
