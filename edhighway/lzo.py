"""LZO1X stream decoding and shared definitions for the LZO codec."""

from __future__ import annotations

import enum

__all__ = [
    "LzoResult",
    "LzoError",
    "InputOverrunError",
    "OutputOverrunError",
    "LookbehindOverrunError",
    "compress_worst_size",
    "decompress",
]

HASH_SIZE = 0x4000
MAX_DIST = 0xBFFF
MAX_MATCH_LEN = 0x800
BUF_SIZE = MAX_DIST + MAX_MATCH_LEN

M1_MAX_OFFSET = 0x0400
M2_MAX_OFFSET = 0x0800
M3_MAX_OFFSET = 0x4000
M4_MAX_OFFSET = 0xBFFF

M1_MIN_LEN = 2
M1_MAX_LEN = 2
M2_MIN_LEN = 3
M2_MAX_LEN = 8
M3_MIN_LEN = 3
M3_MAX_LEN = 33
M4_MIN_LEN = 3
M4_MAX_LEN = 9

M1_MARKER = 0x0
M2_MARKER = 0x40
M3_MARKER = 0x20
M4_MARKER = 0x10

MAX_MATCH_BY_LENGTH_LEN = 34

# Largest run of zero length bytes accepted, as for a 64-bit size type.
_MAX_255_COUNT = (2**64 - 1) // 255 - 2


class LzoResult(enum.IntEnum):
    """Outcome codes of the codec; negative values are failures."""

    LOOKBEHIND_OVERRUN = -4
    OUTPUT_OVERRUN = -3
    INPUT_OVERRUN = -2
    ERROR = -1
    SUCCESS = 0
    INPUT_NOT_CONSUMED = 1


class LzoError(Exception):
    """Raised when a stream cannot be encoded or decoded.

    ``result`` holds the failure code and ``output`` the bytes produced
    before the failure was detected.
    """

    default_result = LzoResult.ERROR

    def __init__(self, message: str = "", output: bytes = b"", result: LzoResult | None = None):
        self.result = result if result is not None else self.default_result
        self.output = bytes(output)
        super().__init__(message or self.result.name.lower().replace("_", " "))


class InputOverrunError(LzoError):
    """The input ended before the stream was complete."""

    default_result = LzoResult.INPUT_OVERRUN


class OutputOverrunError(LzoError):
    """The output would exceed the permitted size."""

    default_result = LzoResult.OUTPUT_OVERRUN


class LookbehindOverrunError(LzoError):
    """A back-reference points before the start of the output."""

    default_result = LzoResult.LOOKBEHIND_OVERRUN


def compress_worst_size(size: int) -> int:
    """Return the largest compressed size possible for ``size`` input bytes."""
    return size + size // 16 + 64 + 3


class _Decoder:
    def __init__(self, src: bytes, max_size: int) -> None:
        self.src = src
        self.pos = 0
        self.end = len(src)
        self.out = bytearray()
        self.max_size = max_size

    def need_in(self, count: int) -> None:
        if self.pos + count > self.end:
            raise InputOverrunError(output=self.out)

    def need_out(self, count: int) -> None:
        if len(self.out) + count > self.max_size:
            raise OutputOverrunError(output=self.out)

    def byte(self) -> int:
        value = self.src[self.pos]
        self.pos += 1
        return value

    def le16(self) -> int:
        value = self.src[self.pos] | (self.src[self.pos + 1] << 8)
        self.pos += 2
        return value

    def copy_literals(self, count: int) -> None:
        self.out += self.src[self.pos : self.pos + count]
        self.pos += count

    def zero_byte_length(self) -> int:
        start = self.pos
        while self.pos < self.end and self.src[self.pos] == 0:
            self.pos += 1
        zeros = self.pos - start
        if zeros > _MAX_255_COUNT:
            raise LzoError(output=self.out)
        return zeros

    def run(self) -> bytes:
        if self.end < 3:
            raise InputOverrunError(output=b"")

        state = 0
        lblen = 0
        first = self.src[0]
        if first >= 22:
            length = self.byte() - 17
            self.need_in(length)
            self.need_out(length)
            self.copy_literals(length)
            state = 4
        elif first >= 18:
            nstate = self.byte() - 17
            state = nstate
            self.need_in(nstate)
            self.need_out(nstate)
            self.copy_literals(nstate)

        while True:
            self.need_in(1)
            inst = self.byte()
            outp = len(self.out)
            if inst & 0xC0:
                self.need_in(1)
                lbcur = outp - ((self.byte() << 3) + ((inst >> 2) & 0x7) + 1)
                lblen = (inst >> 5) + 1
                nstate = inst & 0x3
            elif inst & M3_MARKER:
                lblen = (inst & 0x1F) + 2
                if lblen == 2:
                    zeros = self.zero_byte_length()
                    self.need_in(1)
                    lblen += zeros * 255 + 31 + self.byte()
                self.need_in(2)
                nstate = self.le16()
                lbcur = outp - ((nstate >> 2) + 1)
                nstate &= 0x3
            elif inst & M4_MARKER:
                lblen = (inst & 0x7) + 2
                if lblen == 2:
                    zeros = self.zero_byte_length()
                    self.need_in(1)
                    lblen += zeros * 255 + 7 + self.byte()
                self.need_in(2)
                nstate = self.le16()
                lbcur = outp - (((inst & 0x8) << 11) + (nstate >> 2))
                nstate &= 0x3
                if lbcur == outp:
                    break
                lbcur -= 16384
            elif state == 0:
                length = inst + 3
                if length == 3:
                    zeros = self.zero_byte_length()
                    self.need_in(1)
                    length += zeros * 255 + 15 + self.byte()
                self.need_in(length)
                self.need_out(length)
                self.copy_literals(length)
                state = 4
                continue
            elif state != 4:
                self.need_in(1)
                nstate = inst & 0x3
                lbcur = outp - ((inst >> 2) + (self.byte() << 2) + 1)
                lblen = 2
            else:
                self.need_in(1)
                nstate = inst & 0x3
                lbcur = outp - ((inst >> 2) + (self.byte() << 2) + 2049)
                lblen = 3

            if lbcur < 0:
                raise LookbehindOverrunError(output=self.out)
            self.need_in(nstate)
            self.need_out(lblen + nstate)
            for offset in range(lbcur, lbcur + lblen):
                self.out.append(self.out[offset])
            state = nstate
            self.copy_literals(nstate)

        if lblen != 3:
            raise LzoError(output=self.out)
        if self.pos > self.end:
            raise InputOverrunError(output=self.out)
        return bytes(self.out)


def decompress(src: bytes, max_size: int) -> bytes:
    """Decode an LZO1X stream into at most ``max_size`` bytes.

    Data after the end-of-stream marker is ignored, as the codec reports
    that case as a non-fatal result. Failures raise an ``LzoError`` subclass.
    """
    return _Decoder(bytes(src), max_size).run()