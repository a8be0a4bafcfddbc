import unittest

from crm_dashboard.backend.aggregation import build_heat_grid, classify_channel
from crm_dashboard.backend.heatmap import (
    apply_noise_filter,
    effective_value,
    heat_payload,
    intensity_level,
    scale_max,
)
from crm_dashboard.backend.models import Channel, HeatCell


class ChannelClassificationTests(unittest.TestCase):
    def test_markers_are_case_insensitive_substrings(self):
        self.assertEqual(classify_channel("E-mail"), Channel.EMAIL)
        self.assertEqual(classify_channel("EMAIL enviado"), Channel.EMAIL)
        self.assertEqual(classify_channel("WhatsApp Business"), Channel.WHATSAPP)
        self.assertEqual(classify_channel("linkedin inmail"), Channel.LINKEDIN)
        self.assertEqual(classify_channel("Chamada"), Channel.CALL)
        self.assertEqual(classify_channel("Cold Call"), Channel.CALL)

    def test_unmatched_and_blank_labels_are_other(self):
        self.assertEqual(classify_channel("Reunião"), Channel.OTHER)
        self.assertEqual(classify_channel(""), Channel.OTHER)
        self.assertEqual(classify_channel(None), Channel.OTHER)

    def test_priority_order_is_email_whatsapp_linkedin_call(self):
        self.assertEqual(classify_channel("Call via WhatsApp"), Channel.WHATSAPP)
        self.assertEqual(classify_channel("LinkedIn email"), Channel.EMAIL)
        self.assertEqual(classify_channel("LinkedIn call"), Channel.LINKEDIN)


class HeatGridTests(unittest.TestCase):
    def test_build_heat_grid_fills_gaps_row_major(self):
        grid = build_heat_grid(["2024-02-01", "2024-02-02"], {("2024-02-02", 5): 4})
        self.assertEqual(len(grid), 48)
        self.assertEqual(grid[0], HeatCell("2024-02-01", 0, 0))
        self.assertEqual(grid[24 + 5], HeatCell("2024-02-02", 5, 4))
        self.assertEqual(sum(c.value for c in grid), 4)

    def test_build_heat_grid_without_days_is_empty(self):
        self.assertEqual(build_heat_grid([], {}), ())


class NoiseFilterTests(unittest.TestCase):
    def test_value_at_threshold_collapses_to_empty(self):
        self.assertEqual(effective_value(2, 2), 0)
        self.assertEqual(effective_value(3, 2), 3)
        self.assertEqual(effective_value(0, 0), 0)
        self.assertEqual(effective_value(1, 0), 1)

    def test_apply_noise_filter_keeps_grid_shape(self):
        cells = [HeatCell("d", 0, 2), HeatCell("d", 1, 3), HeatCell("d", 2, 0)]
        filtered = apply_noise_filter(cells, 2)
        self.assertEqual([c.value for c in filtered], [0, 3, 0])
        self.assertEqual([(c.day, c.hour) for c in filtered], [("d", 0), ("d", 1), ("d", 2)])

    def test_intensity_levels(self):
        self.assertEqual(intensity_level(0, 10, 0), 0)
        self.assertEqual(intensity_level(2, 10, 2), 0)
        self.assertEqual(intensity_level(1, 10, 0), 1)
        self.assertEqual(intensity_level(3, 10, 0), 2)
        self.assertEqual(intensity_level(5, 10, 0), 3)
        self.assertEqual(intensity_level(7, 10, 0), 4)
        self.assertEqual(intensity_level(10, 10, 0), 5)

    def test_scale_max_ignores_filtered_cells_and_floors_at_one(self):
        cells = [HeatCell("d", 0, 2), HeatCell("d", 1, 6)]
        self.assertEqual(scale_max(cells, 2), 6)
        self.assertEqual(scale_max(cells, 6), 1)
        self.assertEqual(scale_max([], 0), 1)

    def test_heat_payload_reports_raw_and_effective_values(self):
        payload = heat_payload([HeatCell("d", 9, 2), HeatCell("d", 10, 3)], 2)
        self.assertEqual(payload[0], {"day": "d", "hour": 9, "value": 2, "effective": 0, "level": 0})
        self.assertEqual(payload[1]["effective"], 3)
        self.assertEqual(payload[1]["level"], 5)


if __name__ == "__main__":
    unittest.main()
