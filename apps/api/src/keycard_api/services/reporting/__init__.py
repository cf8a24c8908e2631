from .report_sink import ReportSink, WebhookReportSink, build_report_sink

__all__ = ["ReportSink", "WebhookReportSink", "build_report_sink"]
