from .classifier import DecisionClassifier


__all__ = ["DecisionClassifier"]
