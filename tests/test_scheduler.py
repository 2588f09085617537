from disaster_map_ingest.scheduler import SchedulerOptions, start_scheduler


def test_scheduler_max_runs_one() -> None:
    counter = {"n": 0}

    def run_batch() -> None:
        counter["n"] += 1

    runs = start_scheduler(run_batch, SchedulerOptions(interval_minutes=30, max_runs=1))
    assert counter["n"] == 1
    assert runs == 1


def test_failed_batch_does_not_escape() -> None:
    def run_batch() -> None:
        raise RuntimeError("crawler exploded")

    assert start_scheduler(run_batch, SchedulerOptions(interval_minutes=30, max_runs=1)) == 1
