"""
Remote collaborator interfaces.

The Gemini implementations live in vida_em_dia.services.remote.gemini
and are imported explicitly by the application factory.
"""

from vida_em_dia.services.remote.interface import (
    DefenseGenerationError,
    DefenseGenerator,
    DocumentAnalysisError,
    DocumentAnalyzer,
    RemoteAnswerFunction,
    RemoteFunctionError,
)

__all__ = [
    "DefenseGenerationError",
    "DefenseGenerator",
    "DocumentAnalysisError",
    "DocumentAnalyzer",
    "RemoteAnswerFunction",
    "RemoteFunctionError",
]
