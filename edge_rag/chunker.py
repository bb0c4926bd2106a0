#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Разбиение сырого текста на чанки по строкам-разделителям."""

from typing import Iterable, Iterator, List

DEFAULT_SEPARATOR = "<chunk_splitter>"


def iter_chunks(lines: Iterable[str], separator: str = DEFAULT_SEPARATOR) -> Iterator[str]:
    """Построчно собирает чанки.

    - строка, начинающаяся с separator, закрывает текущий чанк и открывает новый
      (остаток строки после маркера становится его началом)
    - остальные строки приклеиваются к текущему чанку через пробел
    - пустые чанки не выдаются; если маркеров нет, весь текст это один чанк
    """
    parts: List[str] = []
    for raw in lines:
        line = raw.rstrip("\r\n")
        if line.startswith(separator):
            chunk = " ".join(p for p in parts if p)
            if chunk:
                yield chunk
            parts = [line[len(separator):].strip()]
        else:
            parts.append(line.strip())
    chunk = " ".join(p for p in parts if p)
    if chunk:
        yield chunk


def split(raw_text: str, separator: str = DEFAULT_SEPARATOR) -> List[str]:
    return list(iter_chunks(raw_text.splitlines(), separator))


class Chunker:
    """Чанкер с заранее заданным разделителем."""

    def __init__(self, separator: str = DEFAULT_SEPARATOR) -> None:
        if not separator:
            raise ValueError("Chunk separator must be a non-empty string")
        self.separator = separator

    def split(self, raw_text: str) -> List[str]:
        return split(raw_text, self.separator)

    def split_lines(self, lines: Iterable[str]) -> List[str]:
        return list(iter_chunks(lines, self.separator))
