import logging
from datetime import date
from typing import Any, Callable, Mapping, Optional

from api.metrics import COMMAND_CONFIDENCE, COMMANDS_TOTAL
from classification.intent_classifier import IntentClassifier
from dispatch.dispatcher import CommandDispatcher
from extraction.entity_extractor import EntityExtractor
from planner_ai.commands import (
    Command,
    CommandStage,
    ErrorKind,
    ExecutionFailed,
    ExecutionResult,
    UserContext,
)
from storage.repository import PlannerRepository

logger = logging.getLogger(__name__)


class BackendAPI:
    """Central orchestration component: free-form text in, ExecutionResult out."""

    def __init__(
        self,
        repository: PlannerRepository,
        classifier: Optional[IntentClassifier] = None,
        extractor: Optional[EntityExtractor] = None,
        clock: Callable[[], date] = date.today,
    ):
        self.repository = repository
        self.classifier = classifier or IntentClassifier()
        self.extractor = extractor or EntityExtractor()
        self.clock = clock
        self.dispatcher = CommandDispatcher(repository, clock=clock)

    def parse(self, raw_text: str, provided: Optional[Mapping[str, Any]] = None) -> Command:
        """Classify, then extract. Never touches the repository."""

        # 1. Which command is this?
        intent, confidence = self.classifier.classify(raw_text)

        # 2. Fill the slots that command needs
        entities = self.extractor.extract(raw_text, intent, provided=provided, today=self.clock())

        COMMAND_CONFIDENCE.observe(confidence)
        logger.info(f"Parsed {intent.value} (confidence {confidence:.2f}) with slots {sorted(entities)}")
        return Command(raw_text=raw_text, intent=intent, entities=entities, confidence=confidence)

    async def interpret(
        self,
        raw_text: str,
        user_context: UserContext,
        provided: Optional[Mapping[str, Any]] = None,
        confirmed: bool = False,
    ) -> ExecutionResult:
        """
        Parse ``raw_text`` and execute it when the interpretation is confident
        enough (or the caller confirmed it). Every result carries the parsed
        command under ``data["command"]``.
        """
        try:
            command = self.parse(raw_text, provided)
        except Exception:
            logger.exception(f"Failed to interpret {raw_text!r}")
            COMMANDS_TOTAL.labels(intent="unknown", outcome="failed").inc()
            return ExecutionFailed(
                "Sorry, I could not understand that command. Please rephrase it.",
                stage=CommandStage.EXTRACT,
            ).to_result()
        command_data = command.model_dump(mode="json")

        if not (command.auto_executable or confirmed):
            COMMANDS_TOTAL.labels(intent=command.intent.value, outcome="needs_confirmation").inc()
            readable = command.intent.value.replace("_", " ")
            return ExecutionResult(
                success=False,
                message=f'I think you want to {readable}, but I\'m not sure. Please confirm or rephrase.',
                data={"command": command_data, "requires_confirmation": True},
                error=f"{ErrorKind.CLASSIFICATION_AMBIGUOUS.value} at {CommandStage.CLASSIFY.value}",
            )

        result = await self.dispatcher.execute(command, user_context.user_id)
        COMMANDS_TOTAL.labels(
            intent=command.intent.value,
            outcome="executed" if result.success else "failed",
        ).inc()

        data = dict(result.data or {})
        data["command"] = command_data
        return result.model_copy(update={"data": data})
