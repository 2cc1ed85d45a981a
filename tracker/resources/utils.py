"""
Allocation capacity checks.

A resource may be booked on several projects at once, but over any stretch of
time the active allocations overlapping a requested range may not add up to
more than 100 percent.
"""
import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum

from tracker.core.cache_utils import invalidate_reports_cache
from .models import Resource, ResourceAllocation, MAX_ALLOCATION

logger = logging.getLogger(__name__)


class OverallocationError(Exception):
    """Raised when an allocation would push a resource past 100%"""

    def __init__(self, resource, total, conflicting):
        self.resource = resource
        self.total = total
        self.conflicting = list(conflicting)
        super().__init__(f"Resource overallocated. Current allocation: {format_percent(total)}%")


class InactiveResourceError(Exception):
    pass


def format_percent(value):
    """100.00 -> '100', 62.50 -> '62.5'"""
    value = Decimal(value).normalize()
    return f"{value:f}"


def get_overlapping_allocations(resource, start_date, end_date, exclude_id=None):
    """Active allocations of `resource` whose inclusive range meets [start_date, end_date]"""
    queryset = ResourceAllocation.objects.filter(
        resource=resource,
        is_active=True,
        start_date__lte=end_date,
        end_date__gte=start_date,
    )
    if exclude_id is not None:
        queryset = queryset.exclude(pk=exclude_id)
    return queryset


def check_allocation_capacity(resource, start_date, end_date, allocation, exclude_id=None):
    """
    Validate a requested allocation against the resource's other bookings.

    Returns the combined percentage (existing overlapping + requested) and
    raises OverallocationError when it exceeds MAX_ALLOCATION.
    """
    overlapping = get_overlapping_allocations(resource, start_date, end_date, exclude_id=exclude_id)
    current = overlapping.aggregate(total=Sum('allocation'))['total'] or Decimal('0')
    total = current + Decimal(str(allocation))
    if total > MAX_ALLOCATION:
        logger.warning(
            f"Rejected allocation of {allocation}% for resource {resource.resource_code} "
            f"({start_date} - {end_date}): combined {total}%"
        )
        raise OverallocationError(resource, total, overlapping)
    return total


def allocate_resource(resource_id, project, start_date, end_date, allocation, hourly_rate):
    """
    Book a resource on a project.

    The resource row is locked for the duration of the check and insert so two
    concurrent requests cannot both pass the capacity check.
    """
    with transaction.atomic():
        resource = Resource.objects.select_for_update().get(pk=resource_id)
        if not resource.is_active:
            raise InactiveResourceError('Cannot allocate inactive resource')
        check_allocation_capacity(resource, start_date, end_date, allocation)
        return ResourceAllocation.objects.create(
            resource=resource,
            project=project,
            start_date=start_date,
            end_date=end_date,
            allocation=allocation,
            hourly_rate=hourly_rate,
        )


def update_allocation(allocation_obj, **changes):
    """Apply changes to an allocation, re-checking capacity without counting itself"""
    with transaction.atomic():
        resource = Resource.objects.select_for_update().get(pk=allocation_obj.resource_id)
        for field, value in changes.items():
            setattr(allocation_obj, field, value)
        if allocation_obj.is_active:
            if not resource.is_active:
                raise InactiveResourceError('Cannot allocate inactive resource')
            check_allocation_capacity(
                resource,
                allocation_obj.start_date,
                allocation_obj.end_date,
                allocation_obj.allocation,
                exclude_id=allocation_obj.pk,
            )
        allocation_obj.save()
        return allocation_obj


def deactivate_resource_allocations(resource):
    """End every active allocation of a resource; returns how many were closed"""
    count = resource.allocations.filter(is_active=True).update(is_active=False)
    if count:
        # queryset.update() bypasses post_save
        invalidate_reports_cache()
    return count
