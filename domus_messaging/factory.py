# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Domus-Messaging contributors

"""Wire a MessagingService from configuration."""

import logging
from datetime import datetime
from typing import Callable, Optional

from domus_blob_store import BlobStore, create_blob_store
from domus_config import MessagingConfig, load_messaging_config
from domus_logging import Logger, create_logger
from domus_message_bus import EventPublisher, create_publisher
from domus_metrics import MetricsCollector, create_metrics_collector
from domus_storage import DocumentStore, create_document_store

from .attachments import AttachmentResolver
from .delivery import DeliveryChannel
from .directory import DocumentStoreIdentityProvider, IdentityProvider
from .message_log import MessageLog
from .notifications import Notifier, create_notifier
from .read_tracker import ReadTracker
from .retry import RetryConfig, RetryPolicy
from .service import MessagingService
from .thread_store import ThreadStore

logger = logging.getLogger(__name__)


def create_messaging_service(
    config: Optional[MessagingConfig] = None,
    identity_provider: Optional[IdentityProvider] = None,
    document_store: Optional[DocumentStore] = None,
    blob_store: Optional[BlobStore] = None,
    publisher: Optional[EventPublisher] = None,
    metrics_collector: Optional[MetricsCollector] = None,
    logger_adapter: Optional[Logger] = None,
    notifier: Optional[Notifier] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> MessagingService:
    """Build a fully wired service.

    Adapters not passed in are created from ``config`` (loaded from the
    environment when omitted). Without an explicit identity provider,
    identities are read from the ``profiles`` collection of the document
    store.
    """
    config = config or load_messaging_config()

    if document_store is None:
        document_store = create_document_store(config.document_store)
        document_store.connect()
    if blob_store is None:
        blob_store = create_blob_store(config.blob_store)
    if publisher is None:
        publisher = create_publisher(config.message_bus)
        publisher.connect()
    if metrics_collector is None:
        metrics_collector = create_metrics_collector(config.metrics)
    if logger_adapter is None:
        logger_adapter = create_logger(config.logger)
    if notifier is None:
        notifier = create_notifier(config.notifier, publisher=publisher)
    if identity_provider is None:
        identity_provider = DocumentStoreIdentityProvider(document_store)

    thread_store = ThreadStore(document_store, clock=clock)
    thread_store.ensure_indexes()
    delivery = DeliveryChannel(
        publisher=publisher if config.publish_insert_events else None,
        exchange=config.exchange,
        metrics_collector=metrics_collector,
    )
    attachments = AttachmentResolver(
        document_store, blob_store, clock=clock, storage_provider=config.blob_store.blob_store_type
    )
    message_log = MessageLog(
        document_store,
        thread_store,
        attachments=attachments,
        delivery=delivery,
        clock=clock,
        page_size=config.page_size,
    )
    message_log.ensure_indexes()

    service = MessagingService(
        thread_store=thread_store,
        message_log=message_log,
        read_tracker=ReadTracker(document_store, thread_store=thread_store, clock=clock),
        delivery=delivery,
        attachments=attachments,
        identity_provider=identity_provider,
        notifier=notifier,
        metrics_collector=metrics_collector,
        audit_logger=logger_adapter,
        retry_policy=RetryPolicy(RetryConfig(max_attempts=1 + max(0, config.conflict_retries))),
        publisher=publisher,
    )
    logger.info(
        "Messaging service ready (document_store=%s, blob_store=%s, message_bus=%s)",
        config.document_store.doc_store_type,
        config.blob_store.blob_store_type,
        config.message_bus.message_bus_type,
    )
    return service
