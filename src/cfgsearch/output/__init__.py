from .jsonl import append_jsonl_line, iter_jsonl, jsonl_dumps

__all__ = ["append_jsonl_line", "iter_jsonl", "jsonl_dumps"]
