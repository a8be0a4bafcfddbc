import unittest
from datetime import datetime, timezone

from crm_dashboard.backend.aggregation import aggregate, pick_peak_hour, round_half_up
from crm_dashboard.backend.models import ActivityRecord, DateRange, UserMetrics


def _rec(user, channel_type, day, hour, minute=0, record_id="x"):
    y, m, d = (int(p) for p in day.split("-"))
    return ActivityRecord(
        record_id=record_id,
        user=user,
        channel_type=channel_type,
        timestamp=datetime(y, m, d, hour, minute, tzinfo=timezone.utc),
    )


class AggregateEmptyBatchTests(unittest.TestCase):
    def test_empty_input_yields_empty_dashboard(self):
        data = aggregate([])
        self.assertEqual(data.total_activities, 0)
        self.assertEqual(data.date_range, DateRange(None, None))
        self.assertEqual(data.user_metrics, ())
        self.assertEqual(data.heatmap_data, ())
        self.assertEqual(data.daily_volume, ())
        self.assertEqual(data.activities_by_type, ())
        self.assertEqual(data.unique_dates, ())
        self.assertEqual(data.raw_activities, ())


class AggregateUserMetricsTests(unittest.TestCase):
    def test_single_email_record(self):
        data = aggregate([_rec("A", "E-mail", "2024-01-01", 9)])

        self.assertEqual(data.user_metrics, (UserMetrics(
            name="A", total=1, email=1, whatsapp=0, linkedin=0, call=0,
            active_days=1, total_days_in_range=1, avg_hours_per_day=0.0,
            peak_hour=9, morning_percentage=100, afternoon_percentage=0,
            avg_activities_per_day=1.0,
        ),))
        self.assertEqual(len(data.heatmap_data), 24)
        for cell in data.heatmap_data:
            self.assertEqual(cell.day, "2024-01-01")
            self.assertEqual(cell.value, 1 if cell.hour == 9 else 0)

    def test_same_day_span_and_day_part_split(self):
        data = aggregate([
            _rec("A", "Call", "2024-01-01", 9),
            _rec("A", "Call", "2024-01-01", 17),
        ])
        m = data.user_metrics[0]
        self.assertEqual(m.avg_hours_per_day, 8.0)
        self.assertEqual(m.morning_percentage, 50)
        self.assertEqual(m.afternoon_percentage, 50)
        self.assertEqual(m.call, 2)
        # 9 and 17 tie on count; lowest hour wins
        self.assertEqual(m.peak_hour, 9)

    def test_peak_hour_tie_goes_to_lowest_hour_not_first_seen(self):
        data = aggregate([
            _rec("A", "E-mail", "2024-01-01", 15),
            _rec("A", "E-mail", "2024-01-01", 10),
            _rec("A", "E-mail", "2024-01-02", 15),
            _rec("A", "E-mail", "2024-01-02", 10),
            _rec("A", "E-mail", "2024-01-02", 8),
        ])
        self.assertEqual(data.user_metrics[0].peak_hour, 10)

    def test_peak_hour_defaults_to_nine_without_observations(self):
        self.assertEqual(pick_peak_hour({}), 9)
        self.assertEqual(pick_peak_hour({14: 3, 11: 1}), 14)

    def test_averages_round_half_up_to_one_decimal(self):
        data = aggregate([
            _rec("A", "E-mail", "2024-01-01", 9),
            _rec("A", "E-mail", "2024-01-01", 10),
            _rec("A", "E-mail", "2024-01-02", 9),
            _rec("A", "E-mail", "2024-01-03", 9),
            _rec("A", "E-mail", "2024-01-04", 9),
        ])
        m = data.user_metrics[0]
        # span 1 over 4 days = 0.25; 5 activities over 4 days = 1.25
        self.assertEqual(m.avg_hours_per_day, 0.3)
        self.assertEqual(m.avg_activities_per_day, 1.3)
        self.assertEqual(m.active_days, 4)

    def test_percentages_round_independently(self):
        records = [_rec("A", "Call", "2024-01-01", 9)]
        records += [_rec("A", "Call", "2024-01-01", 15) for _ in range(7)]
        m = aggregate(records).user_metrics[0]
        # 12.5 -> 13 and 87.5 -> 88
        self.assertEqual(m.morning_percentage, 13)
        self.assertEqual(m.afternoon_percentage, 88)

    def test_equal_totals_keep_first_encounter_order(self):
        data = aggregate([
            _rec("B", "Call", "2024-01-01", 9),
            _rec("A", "Call", "2024-01-01", 10),
            _rec("C", "Call", "2024-01-01", 11),
            _rec("C", "Call", "2024-01-01", 12),
        ])
        self.assertEqual([m.name for m in data.user_metrics], ["C", "B", "A"])

    def test_presence_uses_days_across_whole_batch(self):
        data = aggregate([
            _rec("A", "Call", "2024-01-01", 9),
            _rec("A", "Call", "2024-01-03", 9),
            _rec("B", "Call", "2024-01-02", 9),
        ])
        for m in data.user_metrics:
            self.assertEqual(m.total_days_in_range, 3)
            self.assertLessEqual(0, m.active_days)
            self.assertLessEqual(m.active_days, m.total_days_in_range)
        self.assertEqual(data.find_user("A").active_days, 2)
        self.assertEqual(data.find_user("B").active_days, 1)
        self.assertIsNone(data.find_user("nobody"))


class AggregateChannelTests(unittest.TestCase):
    def test_whatsapp_business_counts_as_whatsapp_with_raw_label(self):
        data = aggregate([
            _rec("A", "WhatsApp Business", "2024-01-01", 9),
            _rec("A", "WhatsApp", "2024-01-01", 10),
        ])
        self.assertEqual(data.user_metrics[0].whatsapp, 2)
        labels = {t.label: t.count for t in data.activities_by_type}
        self.assertEqual(labels, {"WhatsApp Business": 1, "WhatsApp": 1})

    def test_other_labels_only_count_toward_total(self):
        data = aggregate([
            _rec("A", "Reunião", "2024-01-01", 9),
            _rec("A", "Chamada", "2024-01-01", 10),
            _rec("A", "LinkedIn InMail", "2024-01-01", 11),
        ])
        m = data.user_metrics[0]
        self.assertEqual(m.total, 3)
        self.assertEqual(m.call, 1)
        self.assertEqual(m.linkedin, 1)
        self.assertEqual(m.email + m.whatsapp + m.linkedin + m.call, 2)

    def test_type_distribution_sorted_by_count_then_first_seen(self):
        data = aggregate([
            _rec("A", "WhatsApp", "2024-01-01", 9),
            _rec("A", "E-mail", "2024-01-01", 9),
            _rec("A", "Call", "2024-01-01", 9),
            _rec("B", "Call", "2024-01-01", 9),
        ])
        self.assertEqual(
            [(t.label, t.count) for t in data.activities_by_type],
            [("Call", 2), ("WhatsApp", 1), ("E-mail", 1)],
        )


class AggregateProjectionTests(unittest.TestCase):
    def setUp(self):
        self.records = [
            _rec("A", "E-mail", "2024-01-03", 14, 30),
            _rec("B", "Call", "2024-01-01", 8, 5),
            _rec("A", "Call", "2024-01-01", 8, 45),
            _rec("B", "WhatsApp", "2024-01-02", 23, 59),
        ]

    def test_heat_grid_is_dense_over_days_and_hours(self):
        data = aggregate(self.records)
        self.assertEqual(data.unique_dates, ("2024-01-01", "2024-01-02", "2024-01-03"))
        self.assertEqual(len(data.heatmap_data), len(data.unique_dates) * 24)
        pairs = [(c.day, c.hour) for c in data.heatmap_data]
        self.assertEqual(len(set(pairs)), len(pairs))
        self.assertEqual(pairs[0], ("2024-01-01", 0))
        self.assertEqual(pairs[-1], ("2024-01-03", 23))
        cells = {(c.day, c.hour): c.value for c in data.heatmap_data}
        self.assertEqual(cells[("2024-01-01", 8)], 2)
        self.assertEqual(cells[("2024-01-02", 23)], 1)
        self.assertEqual(sum(cells.values()), len(self.records))

    def test_daily_volume_is_chronological(self):
        data = aggregate(self.records)
        self.assertEqual(
            [(p.day, p.label, p.count) for p in data.daily_volume],
            [("2024-01-01", "01/01", 2), ("2024-01-02", "02/01", 1), ("2024-01-03", "03/01", 1)],
        )

    def test_date_range_and_counts(self):
        data = aggregate(self.records)
        self.assertEqual(data.total_activities, 4)
        self.assertEqual(data.date_range.start, datetime(2024, 1, 1, 8, 5, tzinfo=timezone.utc))
        self.assertEqual(data.date_range.end, datetime(2024, 1, 3, 14, 30, tzinfo=timezone.utc))
        self.assertEqual(sum(m.total for m in data.user_metrics), 4)
        self.assertEqual(data.raw_activities, tuple(self.records))

    def test_aggregate_is_idempotent(self):
        self.assertEqual(aggregate(self.records), aggregate(self.records))

    def test_accepts_generators(self):
        data = aggregate(r for r in self.records)
        self.assertEqual(data.total_activities, 4)


class RoundHalfUpTests(unittest.TestCase):
    def test_round_half_up(self):
        self.assertEqual(round_half_up(0.25, 1), 0.3)
        self.assertEqual(round_half_up(2.5), 3.0)
        self.assertEqual(round_half_up(66.666, 0), 67.0)
        self.assertEqual(round_half_up(0.0, 1), 0.0)


if __name__ == "__main__":
    unittest.main()
