"""Organization lookup for Flowglad events.

The Flowglad customer is the organization. Events carry the Flowglad
customer ID and, usually, the customer's externalId, which is our
organization ID.
"""

from __future__ import annotations

from subsync.domain.errors import ResolutionFailure
from subsync.infra.store import ORGANIZATIONS, Record, RecordStore
from subsync.observability.logging import get_logger
from subsync.observability.redaction import id_prefix, safe_log_context

logger = get_logger(__name__)

CUSTOMER_ID_FIELD = "flowgladCustomerId"


class OrganizationNotFoundError(ResolutionFailure):
    """No organization matches the event.

    The organization may not exist yet when Flowglad delivers an event
    before sign-up completes, so the sender should retry.
    """

    code = "organization_not_found"


def locate_organization(
    store: RecordStore,
    customer_id: str,
    external_id_hint: str | None = None,
) -> Record:
    """Resolve exactly one organization for a Flowglad customer.

    1. Organization whose flowgladCustomerId equals customer_id.
    2. Otherwise the organization whose id equals external_id_hint.

    Args:
        store: Record store.
        customer_id: Flowglad customer ID from the event.
        external_id_hint: customer.externalId from the event, if any.

    Returns:
        The organization record.

    Raises:
        OrganizationNotFoundError: If neither lookup finds a record.
    """
    matches = store.get_by_field(ORGANIZATIONS, CUSTOMER_ID_FIELD, customer_id, limit=2)

    if len(matches) > 1:
        # Data anomaly: two orgs linked to one Flowglad customer.
        # The store orders by id, so the choice is stable across retries.
        logger.error(
            "multiple organizations linked to one flowglad customer",
            extra={
                "extra_fields": safe_log_context(
                    customer_id_prefix=id_prefix(customer_id),
                    organization_ids=[m["id"] for m in matches],
                    chosen_organization_id=matches[0]["id"],
                )
            },
        )

    if matches:
        return matches[0]

    if external_id_hint:
        organization = store.get_by_id(ORGANIZATIONS, external_id_hint)
        if organization is not None:
            logger.info(
                "organization resolved by external id",
                extra={
                    "extra_fields": safe_log_context(
                        customer_id_prefix=id_prefix(customer_id),
                        organization_id=organization["id"],
                    )
                },
            )
            return organization

    raise OrganizationNotFoundError(
        f"no organization for customer {id_prefix(customer_id)}"
    )


def locate_by_external_id(store: RecordStore, external_id: str) -> Record:
    """Resolve the organization whose id is the Flowglad externalId.

    Raises:
        OrganizationNotFoundError: If it does not exist.
    """
    organization = store.get_by_id(ORGANIZATIONS, external_id)
    if organization is None:
        raise OrganizationNotFoundError(f"no organization with id {external_id}")
    return organization
