from decimal import Decimal

from django.test import SimpleTestCase, override_settings

from counts.services.variance import (
    VariancePolicy, compute_variance, classify, stored_percent
)


class ComputeVarianceTests(SimpleTestCase):

    def test_shortage(self):
        result = compute_variance(10, 8, Decimal("2.50"))

        self.assertEqual(result.variance_quantity, -2)
        self.assertEqual(result.variance_percent, Decimal("-20"))
        self.assertEqual(result.variance_value, Decimal("-5.00"))

    def test_overage(self):
        result = compute_variance(4, 6, Decimal("1.10"))

        self.assertEqual(result.variance_quantity, 2)
        self.assertEqual(result.variance_percent, Decimal("50"))
        self.assertEqual(result.variance_value, Decimal("2.20"))

    def test_zero_system_quantity_with_stock_found_is_full_variance(self):
        result = compute_variance(0, 5, Decimal("1.25"))

        self.assertEqual(result.variance_quantity, 5)
        self.assertEqual(result.variance_percent, Decimal("100"))
        self.assertEqual(result.variance_value, Decimal("6.25"))

    def test_zero_system_and_zero_counted(self):
        result = compute_variance(0, 0, Decimal("3"))

        self.assertEqual(result.variance_quantity, 0)
        self.assertEqual(result.variance_percent, Decimal("0"))
        self.assertEqual(result.variance_value, Decimal("0"))

    def test_nothing_found(self):
        result = compute_variance(7, 0, "2")

        self.assertEqual(result.variance_quantity, -7)
        self.assertEqual(result.variance_percent, Decimal("-100"))
        self.assertEqual(result.variance_value, Decimal("-14"))

    def test_value_is_exact(self):
        for system, counted, cost in [(3, 10, "0.3333"), (1000, 1, "19.9999"), (1, 123457, "0.0001")]:
            result = compute_variance(system, counted, Decimal(cost))
            self.assertEqual(result.variance_quantity, counted - system)
            self.assertEqual(result.variance_value, Decimal(counted - system) * Decimal(cost))

    def test_stored_percent_rounds_to_two_places(self):
        result = compute_variance(3, 2, Decimal("1"))

        self.assertEqual(stored_percent(result.variance_percent), Decimal("-33.33"))


class VariancePolicyTests(SimpleTestCase):

    def test_default_boundaries(self):
        policy = VariancePolicy()

        self.assertEqual(policy.classify(Decimal("0")), "minor")
        self.assertEqual(policy.classify(Decimal("5")), "minor")
        self.assertEqual(policy.classify(Decimal("5.01")), "moderate")
        self.assertEqual(policy.classify(Decimal("15")), "moderate")
        self.assertEqual(policy.classify(Decimal("15.01")), "major")

    def test_classifies_absolute_value(self):
        policy = VariancePolicy()

        self.assertEqual(policy.classify(Decimal("-4")), "minor")
        self.assertEqual(policy.classify(Decimal("-20")), "major")

    def test_custom_thresholds(self):
        policy = VariancePolicy(minor_percent=2, moderate_percent=10)

        self.assertEqual(policy.classify(3), "moderate")
        self.assertEqual(policy.classify(10), "moderate")
        self.assertEqual(policy.classify(11), "major")
        self.assertEqual(policy.to_dict(), {"minor_percent": "2", "moderate_percent": "10"})

    def test_rejects_inverted_thresholds(self):
        with self.assertRaises(ValueError):
            VariancePolicy(minor_percent=20, moderate_percent=10)

    @override_settings(STOCK_COUNT={"VARIANCE_MINOR_PERCENT": 1, "VARIANCE_MODERATE_PERCENT": 3})
    def test_policy_from_settings(self):
        self.assertEqual(VariancePolicy.from_settings(), VariancePolicy(Decimal("1"), Decimal("3")))
        self.assertEqual(classify(Decimal("2")), "moderate")
        self.assertEqual(classify(Decimal("2"), VariancePolicy()), "minor")
