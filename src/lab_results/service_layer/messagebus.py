# pylint: disable=broad-except
"""Message bus for the lab results service following Cosmic Python pattern."""

from __future__ import annotations
import logging
import threading
from typing import List, Dict, Callable, Optional, Type, Union, TYPE_CHECKING

from shared.domain.commands import Command, Event
from lab_results.domain import commands, events
from lab_results.service_layer import handlers

if TYPE_CHECKING:
    from lab_results.service_layer.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)

Message = Union[
    commands.SubmitSample,
    commands.AddResult,
    commands.ValidateResult,
    commands.RejectSample,
    commands.NotifyPatient,
    events.SampleReceived,
    events.ResultCompleted,
    events.ResultValidated,
    events.PatientNotified,
]


def handle(
    message: Message,
    uow: AbstractUnitOfWork,
    cancel: Optional[threading.Event] = None,
):
    """Handle message (command or event) with the appropriate handler."""
    results = []
    queue = [message]

    while queue:
        message = queue.pop(0)

        if isinstance(message, Event):
            handle_event(message, queue, uow)
        elif isinstance(message, Command):
            cmd_result = handle_command(message, queue, uow, cancel)
            results.append(cmd_result)
        else:
            raise Exception(f"{message} was not an Event or Command")

    return results


def handle_event(
    event: Event,
    queue: List[Message],
    uow: AbstractUnitOfWork,
):
    """Handle event by calling all registered event handlers."""
    for handler in EVENT_HANDLERS[type(event)]:
        try:
            logger.debug(f"handling event {event} with handler {handler.__name__}")
            handler(event, uow=uow)
            queue.extend(uow.collect_new_events())
        except Exception:
            logger.exception("Exception handling event %s", event)
            continue


def handle_command(
    command: Command,
    queue: List[Message],
    uow: AbstractUnitOfWork,
    cancel: Optional[threading.Event] = None,
):
    """Handle command by calling the registered command handler."""
    logger.debug(f"handling command {command}")
    try:
        handler = COMMAND_HANDLERS[type(command)]
        result = handler(command, uow=uow, cancel=cancel)
        queue.extend(uow.collect_new_events())
        return result
    except Exception:
        logger.exception("Exception handling command %s", command)
        raise


# Event handlers - multiple handlers can respond to same event
EVENT_HANDLERS = {
    events.SampleReceived: [
        handlers.publish_event,
    ],
    events.ResultCompleted: [
        handlers.invalidate_sample_cache,
        handlers.publish_event,
    ],
    events.ResultValidated: [
        handlers.invalidate_sample_cache,
        handlers.send_abnormal_result_alert,
        handlers.publish_event,
    ],
    events.PatientNotified: [
        handlers.invalidate_sample_cache,
        handlers.publish_event,
    ],
}  # type: Dict[Type[Event], List[Callable]]

# Command handlers - single handler per command type
COMMAND_HANDLERS = {
    commands.SubmitSample: handlers.submit_sample,
    commands.AddResult: handlers.add_result,
    commands.ValidateResult: handlers.validate_result,
    commands.RejectSample: handlers.reject_sample,
    commands.NotifyPatient: handlers.notify_patient,
}  # type: Dict[Type[Command], Callable]
