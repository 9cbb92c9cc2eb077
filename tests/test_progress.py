from tunebridge.jobs import JobStatus, TransferJob
from tunebridge.progress import active_job_message, aggregate


def _job(pid, status=JobStatus.PROCESSING, progress=0, **kw):
    return TransferJob(playlist_id=pid, playlist_name=kw.pop("name", f"List {pid}"), status=status, progress_percent=progress, **kw)


def test_empty_batch():
    progress = aggregate([])
    assert progress.overall_percent == 0
    assert progress.total == 0
    assert progress.active_job_message == ""


def test_completed_job_always_counts_as_hundred():
    progress = aggregate([_job("a", JobStatus.COMPLETED, progress=3), _job("b", JobStatus.IDLE)])
    assert progress.overall_percent == 50
    assert progress.completed_count == 1


def test_overall_percent_is_clamped_and_rounded_half_up():
    jobs = [_job("a", progress=250), _job("b", progress=-40)]
    assert 0 <= aggregate(jobs).overall_percent <= 100
    assert aggregate([_job("a", progress=15), _job("b", progress=0)]).overall_percent == 8
    assert aggregate([_job("a", progress=101), _job("b", progress=101)]).overall_percent == 100


def test_counts_and_active_job():
    jobs = [
        _job("a", JobStatus.COMPLETED, progress=100),
        _job("b", JobStatus.FAILED, message="nope"),
        _job("c", JobStatus.PROCESSING, progress=40, name="Chill", processed_tracks=4, total_tracks=10),
        _job("d", JobStatus.IDLE),
    ]
    progress = aggregate(jobs)
    assert progress.completed_count == 1
    assert progress.failed_count == 1
    assert progress.total == 4
    assert progress.overall_percent == 35
    assert progress.active_job_message == 'Processing "Chill" - 4/10 tracks'


def test_active_job_message_fallbacks():
    assert active_job_message(_job("a", processed_tracks=7)) == 'Processing "List a" - 7 tracks processed'
    assert active_job_message(_job("a", message="Matching")) == 'Processing "List a" - Matching'
    assert active_job_message(_job("a")) == 'Processing "List a"'
    assert active_job_message(None) == ""


def test_all_terminal_has_no_active_message():
    progress = aggregate([_job("a", JobStatus.COMPLETED), _job("b", JobStatus.FAILED)])
    assert progress.active_job_message == ""
    assert progress.overall_percent == 50
