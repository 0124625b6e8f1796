from .evaluator import ExpressionEvaluator, evaluate, split_arguments

__all__ = ["ExpressionEvaluator", "evaluate", "split_arguments"]
