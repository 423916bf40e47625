"""Metric descriptors and the per-cycle sink that collects emissions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Tuple

from prometheus_client.core import GaugeMetricFamily

NAMESPACE = "speedtest"

CYCLE_LABELS = ("test_uuid",)
CONTEXT_LABELS = (
    "test_uuid",
    "user_lat",
    "user_lon",
    "user_ip",
    "user_isp",
    "server_lat",
    "server_lon",
    "server_id",
    "server_name",
    "server_country",
    "distance",
)


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    return "_".join(part for part in (namespace, subsystem, name) if part)


@dataclass(frozen=True)
class MetricDescriptor:
    name: str
    documentation: str
    labels: Tuple[str, ...]

    def family(self) -> GaugeMetricFamily:
        return GaugeMetricFamily(self.name, self.documentation, labels=list(self.labels))


@dataclass(frozen=True)
class MetricRegistry:
    """The five gauges exported for every cycle. Built once per process."""

    up: MetricDescriptor
    scrape_duration: MetricDescriptor
    latency: MetricDescriptor
    download: MetricDescriptor
    upload: MetricDescriptor

    def __iter__(self) -> Iterator[MetricDescriptor]:
        return iter((self.up, self.scrape_duration, self.latency, self.upload, self.download))


def build_registry(namespace: str = NAMESPACE) -> MetricRegistry:
    return MetricRegistry(
        up=MetricDescriptor(
            build_fq_name(namespace, "", "up"),
            "Was the last speedtest successful.",
            CYCLE_LABELS,
        ),
        scrape_duration=MetricDescriptor(
            build_fq_name(namespace, "", "scrape_duration_seconds"),
            "Time to perform last speed test",
            CYCLE_LABELS,
        ),
        latency=MetricDescriptor(
            build_fq_name(namespace, "", "latency_seconds"),
            "Measured latency on last speed test",
            CONTEXT_LABELS,
        ),
        upload=MetricDescriptor(
            build_fq_name(namespace, "", "upload_speed_Bps"),
            "Last upload speedtest result in Bytes per second",
            CONTEXT_LABELS,
        ),
        download=MetricDescriptor(
            build_fq_name(namespace, "", "download_speed_Bps"),
            "Last download speedtest result in Bytes per second",
            CONTEXT_LABELS,
        ),
    )


@dataclass(frozen=True)
class Sample:
    descriptor: MetricDescriptor
    value: float
    label_values: Tuple[str, ...]

    @property
    def labels(self) -> dict:
        return dict(zip(self.descriptor.labels, self.label_values))


@dataclass
class MetricSink:
    """Collects the samples emitted during one cycle."""

    samples: List[Sample] = field(default_factory=list)

    def emit(self, descriptor: MetricDescriptor, value: float, *label_values: str) -> None:
        if len(label_values) != len(descriptor.labels):
            raise ValueError(
                f"{descriptor.name} expects {len(descriptor.labels)} label values, got {len(label_values)}"
            )
        self.samples.append(Sample(descriptor, float(value), tuple(str(v) for v in label_values)))


def to_metric_families(registry: MetricRegistry, samples: List[Sample]) -> List[GaugeMetricFamily]:
    """Group samples into gauge families, skipping kinds with no samples."""

    families = []
    for descriptor in registry:
        matching = [sample for sample in samples if sample.descriptor == descriptor]
        if not matching:
            continue
        family = descriptor.family()
        for sample in matching:
            family.add_metric(list(sample.label_values), sample.value)
        families.append(family)
    return families
