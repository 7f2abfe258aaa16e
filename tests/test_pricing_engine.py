import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

from app.services.pricing.pricing_engine import (
    PricingSettings,
    price_material,
    price_process,
    pricing_signature,
)
from app.services.pricing.pricing_recompute_core import (
    MATERIAL,
    PROCESS,
    PricingRecord,
    bulk_recompute,
    is_stale,
)
from app.core.exceptions import UnknownSkillLevel, MissingRate, InvalidPricingInput
from app.constants.error_codes import ErrorCode

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def settings(**overrides):
    values = {
        "labor_rates": {"standard": Decimal("50"), "expert": Decimal("75")},
        "material_markup": Decimal("1.3"),
        "business_multiplier": Decimal("1.3"),
        "version": 4,
    }
    values.update(overrides)
    return PricingSettings(**values)


def material(unit_cost="10"):
    return SimpleNamespace(unit_cost=Decimal(unit_cost))


def process(skill_level="standard", labor_hours="2", base_materials_cost="10"):
    return SimpleNamespace(
        skill_level=skill_level,
        labor_hours=Decimal(labor_hours),
        base_materials_cost=Decimal(base_materials_cost),
    )


class TestPriceMaterial(unittest.TestCase):

    def test_marked_up_cost(self):
        result = price_material(material("10"), Decimal("3"), settings(), now=NOW)

        self.assertEqual(result.kind, "material")
        self.assertEqual(result.base_cost, Decimal("30.00"))
        self.assertEqual(result.marked_up_cost, Decimal("39.00"))
        self.assertEqual(result.total_cost, Decimal("39.00"))
        self.assertEqual(result.material_markup, Decimal("1.3"))
        self.assertEqual(result.settings_version, 4)
        self.assertEqual(result.calculated_at, NOW)

    def test_zero_quantity_prices_to_zero(self):
        result = price_material(material("10"), 0, settings(), now=NOW)
        self.assertEqual(result.total_cost, Decimal("0.00"))

    def test_rounds_half_up_on_output_only(self):
        result = price_material(material("0.125"), 1, settings(material_markup=Decimal("1")), now=NOW)
        self.assertEqual(result.unit_cost, Decimal("0.13"))

        # 0.125 * 3 = 0.375 before rounding
        three = price_material(material("0.125"), 3, settings(material_markup=Decimal("1")), now=NOW)
        self.assertEqual(three.total_cost, Decimal("0.38"))

    def test_negative_quantity_rejected(self):
        with self.assertRaises(InvalidPricingInput):
            price_material(material("10"), Decimal("-1"), settings(), now=NOW)

    def test_non_numeric_cost_rejected(self):
        with self.assertRaises(InvalidPricingInput):
            price_material(SimpleNamespace(unit_cost=None), 1, settings(), now=NOW)

    def test_missing_markup(self):
        with self.assertRaises(MissingRate):
            price_material(material(), 1, settings(material_markup=Decimal("0")), now=NOW)


class TestPriceProcess(unittest.TestCase):

    def test_labor_and_materials_with_multiplier(self):
        result = price_process(
            process("standard", "2", "10"),
            settings(material_markup=Decimal("2")),
            now=NOW,
        )

        self.assertEqual(result.labor_cost, Decimal("100.00"))
        self.assertEqual(result.materials_cost, Decimal("20.00"))
        self.assertEqual(result.total_cost, Decimal("156.00"))
        self.assertEqual(result.hourly_rate, Decimal("50.00"))
        self.assertEqual(result.business_multiplier, Decimal("1.3"))

    def test_skill_level_lookup_is_case_insensitive(self):
        result = price_process(process("EXPERT", "1", "0"), settings(), now=NOW)
        self.assertEqual(result.skill_level, "expert")
        self.assertEqual(result.labor_cost, Decimal("75.00"))

    def test_unknown_skill_level(self):
        with self.assertRaises(UnknownSkillLevel) as ctx:
            price_process(process("master"), settings(), now=NOW)
        self.assertEqual(ctx.exception.error_code, ErrorCode.UNKNOWN_SKILL_LEVEL)

    def test_zero_rate_is_missing(self):
        with self.assertRaises(MissingRate):
            price_process(
                process("standard"),
                settings(labor_rates={"standard": Decimal("0")}),
                now=NOW,
            )

    def test_missing_multiplier(self):
        with self.assertRaises(MissingRate):
            price_process(process(), settings(business_multiplier=Decimal("0")), now=NOW)

    def test_negative_hours_rejected(self):
        with self.assertRaises(InvalidPricingInput):
            price_process(process(labor_hours="-1"), settings(), now=NOW)


class TestDeterminism(unittest.TestCase):

    def test_same_inputs_same_components(self):
        first = price_process(process(), settings(), now=NOW)
        second = price_process(process(), settings(), now=NOW)
        self.assertEqual(first, second)

    def test_signature_ignores_calculation_time(self):
        first = price_material(material(), 2, settings(), now=NOW)
        later = price_material(material(), 2, settings(), now=NOW + timedelta(days=1))
        self.assertEqual(pricing_signature(first), pricing_signature(later))

        changed = price_material(material(), 2, settings(material_markup=Decimal("1.4")), now=NOW)
        self.assertNotEqual(pricing_signature(first), pricing_signature(changed))

    def test_settings_are_read_only(self):
        value = settings()
        with self.assertRaises(TypeError):
            value.labor_rates["standard"] = Decimal("1")

    def test_settings_reject_non_numeric_rates(self):
        with self.assertRaises(InvalidPricingInput):
            settings(labor_rates={"standard": "lots"})


class TestBulkRecompute(unittest.TestCase):

    def test_one_bad_record_does_not_abort_batch(self):
        snapshot = [
            PricingRecord(MATERIAL, 1, material("10"), Decimal("3")),
            PricingRecord(PROCESS, 2, process("master")),
            PricingRecord(PROCESS, 3, process("standard")),
        ]

        batch = bulk_recompute(snapshot, settings(), now=NOW)

        self.assertEqual(batch.total, 3)
        self.assertEqual([(r.kind, r.record_id) for r in batch.updated], [(MATERIAL, 1), (PROCESS, 3)])
        self.assertEqual(len(batch.failed), 1)
        self.assertEqual(batch.failed[0].record_id, 2)
        self.assertEqual(batch.failed[0].error_code, ErrorCode.UNKNOWN_SKILL_LEVEL)
        self.assertEqual(batch.error_code, ErrorCode.PARTIAL_BATCH_FAILURE)

        out = batch.to_out()
        self.assertEqual((out.updated, out.failed), (2, 1))
        self.assertEqual(out.error_code, "PARTIAL_BATCH_FAILURE")

    def test_clean_batch_has_no_error_code(self):
        batch = bulk_recompute([PricingRecord(MATERIAL, 1, material(), 1)], settings(), now=NOW)
        self.assertIsNone(batch.error_code)

    def test_all_records_share_one_settings_version(self):
        snapshot = [PricingRecord(MATERIAL, i, material(str(i)), 1) for i in range(1, 6)]
        batch = bulk_recompute(snapshot, settings(version=9), now=NOW)
        self.assertEqual({r.components.settings_version for r in batch.updated}, {9})

    def test_malformed_records_do_not_abort_batch(self):
        snapshot = [
            PricingRecord(MATERIAL, 1, SimpleNamespace(name="loose stones"), 1),
            PricingRecord("engraving", 2, material("5"), 1),
            PricingRecord(MATERIAL, 3, material("10"), Decimal("3")),
        ]

        with self.assertLogs("app.services.pricing.pricing_recompute_core", level="ERROR"):
            batch = bulk_recompute(snapshot, settings(), now=NOW)

        self.assertEqual(batch.total, 3)
        self.assertEqual([r.record_id for r in batch.updated], [3])
        self.assertEqual(batch.updated[0].components.total_cost, Decimal("39.00"))
        self.assertEqual([f.record_id for f in batch.failed], [1, 2])
        self.assertEqual(
            {f.error_code for f in batch.failed},
            {ErrorCode.INVALID_PRICING_INPUT},
        )
        self.assertEqual(batch.error_code, ErrorCode.PARTIAL_BATCH_FAILURE)

    def test_mark_failed_moves_record(self):
        batch = bulk_recompute([PricingRecord(MATERIAL, 1, material(), 1)], settings(), now=NOW)
        batch.mark_failed(MATERIAL, 1, ErrorCode.STORAGE_FAILURE, "locked")

        self.assertEqual(batch.updated, [])
        self.assertEqual(batch.failed[0].error_code, ErrorCode.STORAGE_FAILURE)


class TestStaleness(unittest.TestCase):

    def test_missing_pricing_is_stale(self):
        self.assertTrue(is_stale(None, NOW))
        self.assertTrue(is_stale({}, NOW))
        self.assertTrue(is_stale({"calculated_at": "not a date"}, NOW))

    def test_older_than_settings_is_stale(self):
        pricing = {"calculated_at": (NOW - timedelta(hours=1)).isoformat()}
        self.assertTrue(is_stale(pricing, NOW))
        self.assertFalse(is_stale(pricing, NOW - timedelta(hours=2)))

    def test_naive_timestamps_treated_as_utc(self):
        pricing = {"calculated_at": "2024-05-01T13:00:00"}
        self.assertFalse(is_stale(pricing, NOW.replace(tzinfo=None)))


if __name__ == "__main__":
    unittest.main()
