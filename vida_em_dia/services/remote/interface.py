"""
Remote Collaborator Interfaces

The assistant talks to three hosted functions: the answer function,
the defense generator and the document analyzer. Each one fails by
raising its own error type; callers catch at the call site and turn the
failure into a chat message. Nothing here is retried.
"""

from abc import ABC, abstractmethod

from vida_em_dia.models.assistant import DefenseAnswer
from vida_em_dia.models.finance import DocumentAnalysis, TrafficFineDetails
from vida_em_dia.models.knowledge import RemoteAnswer, RemoteAnswerRequest


class RemoteFunctionError(Exception):
    """A hosted function could not be reached or returned an error."""
    pass


class DefenseGenerationError(RemoteFunctionError):
    """The defense draft could not be generated."""
    pass


class DocumentAnalysisError(RemoteFunctionError):
    """The uploaded document could not be analysed."""
    pass


class RemoteAnswerFunction(ABC):

    @abstractmethod
    async def answer(self, request: RemoteAnswerRequest) -> RemoteAnswer:
        """
        Answer a question, cache-first.

        An empty answer_text means "no answer"; the caller falls back
        to the local FAQ.

        Raises:
            RemoteFunctionError: If the function is unreachable
        """
        pass


class DefenseGenerator(ABC):

    @abstractmethod
    async def generate_defense(
        self,
        fine: TrafficFineDetails,
        answers: list[DefenseAnswer],
    ) -> str:
        """
        Draft a formal defense for a traffic fine, in Markdown.

        Raises:
            DefenseGenerationError: If no draft could be produced
        """
        pass


class DocumentAnalyzer(ABC):

    @abstractmethod
    async def analyze(
        self,
        file_url: str,
        filename: str,
        household_id: str,
    ) -> DocumentAnalysis:
        """
        Classify an uploaded document and extract its key fields.

        Raises:
            DocumentAnalysisError: If the document could not be analysed
        """
        pass
