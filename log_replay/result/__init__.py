from .result import Error, Ok, Result


__all__ = ["Error", "Ok", "Result"]
