from __future__ import annotations

from dataclasses import dataclass

from coursehub.repos.bundle import Repos
from coursehub.services.access_gate import AccessGate
from coursehub.services.catalog_service import CatalogService
from coursehub.services.enrollment_service import EnrollmentManager
from coursehub.services.events import EventPublisher
from coursehub.services.payment_service import PaymentWorkflow
from coursehub.services.progress_service import ProgressTracker
from coursehub.services.task_queue import TaskQueue, task_queue


@dataclass(frozen=True, slots=True)
class Services:
    catalog: CatalogService
    access: AccessGate
    payments: PaymentWorkflow
    enrollments: EnrollmentManager
    progress: ProgressTracker
    events: EventPublisher


def build_services(
    repos: Repos, queue: TaskQueue | None = None, *, defer_events: bool = False
) -> Services:
    """Wire the services over one repository set.

    With ``defer_events`` the caller must ``await services.events.flush()``
    once its transaction has committed.
    """
    publisher = EventPublisher(
        queue if queue is not None else task_queue, deferred=defer_events
    )
    catalog = CatalogService(repos.catalog)
    gate = AccessGate(catalog, repos.enrollments)
    progress = ProgressTracker(
        catalog, repos.enrollments, repos.completions, gate, publisher
    )
    payments = PaymentWorkflow(
        catalog, repos.enrollments, repos.payments, progress, publisher
    )
    return Services(
        catalog=catalog,
        access=gate,
        payments=payments,
        enrollments=EnrollmentManager(catalog, repos.enrollments, payments),
        progress=progress,
        events=publisher,
    )
