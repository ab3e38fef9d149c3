from stream_profiler.models import Configuration, ProfilePoint, WindowSummary
from stream_profiler.pareto import pareto
from stream_profiler.trace import simulate
from stream_profiler.trigger import Trigger, TriggerConfig


def main() -> None:
    high = Configuration(1280, 0, 0)
    mid = Configuration(640, 1, 10)
    low = Configuration(320, 2, 20)

    profile = [
        ProfilePoint(high, 2_400_000.0, 0.93),
        ProfilePoint(mid, 900_000.0, 0.81),
        ProfilePoint(low, 250_000.0, 0.58),
        ProfilePoint(Configuration(640, 0, 30), 1_100_000.0, 0.70),
    ]
    frontier = pareto(profile)

    bandwidth = {
        high: [2_300_000.0, 2_500_000.0, 3_100_000.0, 3_200_000.0, 2_900_000.0, 2_400_000.0],
        mid: [880_000.0, 910_000.0, 1_200_000.0, 1_250_000.0, 1_100_000.0, 900_000.0],
        low: [240_000.0, 260_000.0, 330_000.0, 340_000.0, 300_000.0, 250_000.0],
    }
    accuracy = {high: 0.93, mid: 0.81, low: 0.58}
    summaries = {
        configuration: [
            WindowSummary(index, value, accuracy[configuration], None, frame_count=150)
            for index, value in enumerate(values)
        ]
        for configuration, values in bandwidth.items()
    }

    trigger = Trigger(
        TriggerConfig(bandwidth_high_watermark=2_800_000.0, consecutive_windows_required=2),
        frontier,
        high,
        profile=profile,
    )
    result = simulate(summaries, trigger)

    print("Pareto frontier")
    for point in frontier:
        print(
            f"  {point.configuration.label}: "
            f"{point.mean_bandwidth_bps / 1000:.0f} kbps, accuracy {point.mean_accuracy:.2f}"
        )
    print("Decisions")
    for decision in result.decisions:
        print(
            f"  after interval {decision.interval_index}: "
            f"{decision.previous_configuration} -> {decision.configuration}"
        )
    print("Trace")
    for entry in result.trace:
        print(f"  {entry.interval_index}: {entry.configuration} {entry.bandwidth_bps or 0:.0f} bps")


if __name__ == "__main__":
    main()
