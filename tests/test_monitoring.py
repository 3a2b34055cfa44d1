from robots_audit.audit.scheduler import AuditScheduler, Job
from robots_audit.utils.monitoring import AuditMonitor, MetricsCollector, initialize_monitoring

from .conftest import StubFetcher


def test_monitor_counts_jobs_by_status():
    monitor = AuditMonitor(MetricsCollector())

    monitor.job_started()
    monitor.job_finished('clean', 0.5)
    monitor.job_started()
    monitor.job_finished('failed', 1.5, 'transport')

    metrics = monitor.metrics
    assert metrics.sample('robots_audit_jobs_total', {'status': 'clean'}) == 1
    assert metrics.sample('robots_audit_errors_total', {'error_kind': 'transport'}) == 1
    assert metrics.sample('robots_audit_active_workers') == 0
    assert metrics.sample('robots_audit_fetch_seconds_count') == 2
    assert monitor.get_summary()['jobs'] == {'clean': 1, 'excluded': 0, 'failed': 1}


async def test_scheduler_reports_to_monitor(stub_pages):
    monitor = initialize_monitoring(enable_prometheus=False)
    jobs = [Job(row=row, url=url) for row, url in enumerate(stub_pages, start=2)]

    results = [r async for r in AuditScheduler(StubFetcher(stub_pages), monitor=monitor).run(jobs)]

    summary = monitor.get_summary()
    assert sum(summary['jobs'].values()) == len(results) == 4
    assert summary['jobs']['excluded'] == 2
