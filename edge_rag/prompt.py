#!/usr/bin/env python3
# -*- coding: utf-8 -*-
from string import Formatter


class PromptBuilder:
    """Шаблон промпта с двумя позиционными слотами: {0} контекст, {1} вопрос.

    Подстановка позиционная и точная; фигурные скобки внутри подставляемых
    значений не интерпретируются.
    """
    def __init__(self, template: str) -> None:
        fields = [name for _, name, _, _ in Formatter().parse(template) if name is not None]
        if sorted(set(fields)) != ["0", "1"]:
            raise ValueError(
                f"Prompt template must use exactly the positional slots {{0}} and {{1}}, got {fields}"
            )
        self._template = template

    def build(self, context: str, query: str) -> str:
        return self._template.format(context, query)
