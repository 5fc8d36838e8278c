# eumlog/base_utils.py

import json
import re
from collections import OrderedDict

import commentjson
import yaml
from json_repair import repair_json

from eumlog.settings import logger


class BaseUtils():

    # -----------------------
    # General Utils
    # -----------------------

    def color_print(self, text, color=None):
        COLOR_CODES = {
            'black': '30', 'red': '31', 'green': '32', 'yellow': '33', 'blue': '34', 'magenta': '35',
            'cyan': '36', 'white': '37', 'bright_black': '90', 'bright_red': '91', 'bright_green': '92',
            'bright_yellow': '93', 'bright_blue': '94', 'bright_magenta': '95', 'bright_cyan': '96', 'bright_white': '97'
        }
        if color and color.lower() in COLOR_CODES:
            text = f"\033[{COLOR_CODES[color.lower()]}m{text}\033[0m"
        logger.info(str(text))
        return False

    def clean_triple_backticks(self, code) -> str:
        pattern = r'```[a-zA-Z]*\n?|```\n?'
        return re.sub(pattern, '', code)

    def strip_markdown_bold(self, text: str) -> str:
        return (text or "").replace("**", "")

    def coerce_field_to_str(self, value) -> str:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        try:
            return json.dumps(value, ensure_ascii=False)
        except TypeError:
            return str(value).strip()

    def unsafe_string_format(self, dest_string, print_unused_keys_report=True, **kwargs):
        """
        Replaces {key} placeholders only for the keys passed in kwargs.

        Unlike str.format, braces that do not name a passed key (JSON examples
        in prompts, for instance) are left untouched.
        """
        missing_keys = []

        def replacer(match):
            key = match.group(1)
            if key in kwargs:
                return str(kwargs[key])
            missing_keys.append(key)
            return match.group(0)

        pattern = re.compile(r'\{(\w+)\}')
        result = pattern.sub(replacer, dest_string)
        if missing_keys and print_unused_keys_report:
            logger.info(f"\033[93m\033[3mMissing keys within string-to-format in unsafe_string_format: {', '.join(missing_keys)}\033[0m")
        return result

    # -----------------------
    # Fault tolerant JSON
    # -----------------------

    def _sanitize_json_string(self, input_str: str) -> str:
        """
        Prepares model-written JSON for the YAML fallback: strips code fences
        and comments, escapes stray backslashes, newlines and quotes inside strings.
        """
        def process_string_segment(match):
            content = match.group(1)
            content = re.sub(r'(?<!\\)\\(?![bfnrtu"\\/])', r'\\\\', content)
            content = re.sub(r'(?<!\\)\n', r'\\n', content)
            content = re.sub(r'(?<!\\)"', r'\"', content)
            return f'"{content}"'

        input_str = self.clean_triple_backticks(input_str)
        input_str = re.sub(r'//.*?$|/\*.*?\*/', '', input_str, flags=re.MULTILINE | re.DOTALL)
        return re.sub(r'(?<!\\)"((?:[^"\\]|\\.)*?)"', process_string_segment, input_str, flags=re.DOTALL)

    def _load_json_once(self, json_str: str, ensure_ordered: bool):
        err = ""
        try:
            if ensure_ordered:
                return commentjson.loads(self.clean_triple_backticks(json_str), object_pairs_hook=OrderedDict), ""
            return commentjson.loads(self.clean_triple_backticks(json_str)), ""
        except Exception as e:
            err = str(e)
        try:
            data = yaml.safe_load(self._sanitize_json_string(json_str))
            if isinstance(data, str):
                raise ValueError("YAML parsing produced a bare string.")
            return data, ""
        except Exception as e:
            err += "\n--\n" + str(e)
        return None, err

    def load_fault_tolerant_json(self, json_str, ensure_ordered=False):
        """
        commentjson first, then YAML on a sanitized copy, then the same two
        again on a json_repair'ed copy. Raises ValueError when all fail.
        """
        data, err = self._load_json_once(json_str, ensure_ordered)
        if data:
            return data
        repaired = repair_json(json_str)
        r_data, r_err = self._load_json_once(repaired, ensure_ordered)
        if r_data:
            return r_data
        self.color_print(f"load_fault_tolerant_json: JSON parsing failed: {err} / {r_err}", color="red")
        raise ValueError(f"load_fault_tolerant_json: JSON parsing failed: {r_err}")
