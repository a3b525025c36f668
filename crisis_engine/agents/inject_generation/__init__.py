from .generator import GenerationContext, InjectContentGenerator, TriggerContext, infer_robustness


__all__ = ["GenerationContext", "InjectContentGenerator", "TriggerContext", "infer_robustness"]
