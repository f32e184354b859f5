"""工具参数的 JSON 值模型与编解码。

工具参数在分发前统一转换为 JSON 值（None/bool/int/float/str/list/dict），
并以 JSON 对象文本的形式记录与传输，保证序列化往返不丢失信息。
"""

import json
import math
from typing import Any, Dict, List, Mapping, Union

JsonValue = Union[None, bool, int, float, str, List["JsonValue"], Dict[str, "JsonValue"]]


def ensure_json_value(value: Any, path: str = "$") -> JsonValue:
    """把任意值规整为 JSON 值，无法表示时抛出 TypeError/ValueError。"""

    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValueError(f"{path}: non-finite number is not valid JSON")
        return value
    if isinstance(value, Mapping):
        return ensure_json_object(value, path)
    if isinstance(value, (list, tuple)):
        return [ensure_json_value(item, f"{path}[{idx}]") for idx, item in enumerate(value)]
    raise TypeError(f"{path}: unsupported argument type {type(value).__name__}")


def ensure_json_object(value: Mapping[str, Any], path: str = "$") -> Dict[str, JsonValue]:
    if not isinstance(value, Mapping):
        raise TypeError(f"{path}: arguments must be a mapping, got {type(value).__name__}")
    result: Dict[str, JsonValue] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise TypeError(f"{path}: argument names must be strings, got {key!r}")
        result[key] = ensure_json_value(item, f"{path}.{key}")
    return result


def dump_arguments(arguments: Mapping[str, Any]) -> str:
    """参数 -> JSON 对象文本。"""

    return json.dumps(ensure_json_object(arguments), ensure_ascii=False)


def parse_arguments(raw: Any) -> Dict[str, JsonValue]:
    """解析后端返回的 arguments 字段。

    大多数后端会把 arguments 作为 JSON 字符串返回，这里做一层 json.loads 尝试，
    失败时保留原始字符串到 `_raw`，避免信息丢失。数组按位置展开为 arg0、arg1……，
    其它标量包装为 {"value": ...}。
    """

    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return ensure_json_object(raw)
    if isinstance(raw, str):
        if not raw.strip():
            return {}
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError:
            return {"_raw": raw}
        if isinstance(decoded, str):
            return {"value": decoded}
        return parse_arguments(decoded)
    if isinstance(raw, (list, tuple)):
        return {f"arg{idx}": ensure_json_value(item) for idx, item in enumerate(raw)}
    return {"value": ensure_json_value(raw)}
