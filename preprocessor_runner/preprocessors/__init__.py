from preprocessor_runner.preprocessors.base import BasePreprocessorSource, PreprocessorEntry
from preprocessor_runner.preprocessors.factory import PreprocessorSourceFactory
from preprocessor_runner.preprocessors.registry import PreprocessorRegistry

__all__ = [
    "BasePreprocessorSource",
    "PreprocessorEntry",
    "PreprocessorRegistry",
    "PreprocessorSourceFactory",
]
