"""Exporters for delivering spans to backends."""

from relaytrace.exporter.console_exporter import ConsoleExporter
from relaytrace.exporter.otlp_exporter import OTLPExporter

__all__ = ["ConsoleExporter", "OTLPExporter"]
