"""LZO1X stream encoding."""

from __future__ import annotations

from edhighway.lzo import (
    BUF_SIZE,
    HASH_SIZE,
    M1_MARKER,
    M1_MAX_OFFSET,
    M2_MAX_LEN,
    M2_MAX_OFFSET,
    M2_MIN_LEN,
    M3_MARKER,
    M3_MAX_LEN,
    M3_MAX_OFFSET,
    M4_MARKER,
    M4_MAX_LEN,
    MAX_DIST,
    MAX_MATCH_BY_LENGTH_LEN,
    MAX_MATCH_LEN,
    OutputOverrunError,
    compress_worst_size,
)

__all__ = ["compress"]

_NIL = 0xFFFF


def _common_prefix(buf: bytearray, a: int, b: int, limit: int) -> int:
    n = 0
    step = 32
    while n + step <= limit and buf[a + n : a + n + step] == buf[b + n : b + n + step]:
        n += step
    while n < limit and buf[a + n] == buf[b + n]:
        n += 1
    return n


class _Compressor:
    def __init__(self, src: bytes, max_size: int) -> None:
        self.src = src
        self.src_end = len(src)
        self.max_size = max_size
        self.out = bytearray()

        self.buffer = bytearray(BUF_SIZE + MAX_MATCH_LEN)
        self.head3 = [0] * HASH_SIZE
        self.chain_sz = [0] * HASH_SIZE
        self.chain = [0] * BUF_SIZE
        self.best_len = [0] * BUF_SIZE
        self.head2 = [_NIL] * (1 << 16)
        self.best_off = [0] * MAX_MATCH_BY_LENGTH_LEN

        self.cycle1_countdown = MAX_DIST
        self.wind_sz = min(len(src), MAX_MATCH_LEN)
        self.wind_b = 0
        self.wind_e = self.wind_sz
        self.buffer[: self.wind_sz] = src[: self.wind_sz]
        self.inp = self.wind_sz
        if self.wind_e == BUF_SIZE:
            self.wind_e = 0
        if self.wind_sz < 3:
            start = self.wind_b + self.wind_sz
            self.buffer[start : start + 3] = bytes(3)
        self.bufp = 0
        self.buf_sz = 0

    # --- hashing -------------------------------------------------------

    def _key3(self, pos: int) -> int:
        b = self.buffer
        x = (((b[pos] << 5) ^ b[pos + 1]) << 5) ^ b[pos + 2]
        return (((0x9F5F * x) & 0xFFFFFFFF) >> 5) & 0x3FFF

    def _key2(self, pos: int) -> int:
        b = self.buffer
        return b[pos] ^ (b[pos + 1] << 8)

    def _head3_of(self, key: int) -> int:
        return _NIL if self.chain_sz[key] == 0 else self.head3[key]

    # --- window --------------------------------------------------------

    def _get_byte(self) -> None:
        buf = self.buffer
        e = self.wind_e
        if self.inp >= self.src_end:
            if self.wind_sz > 0:
                self.wind_sz -= 1
            value = 0
        else:
            value = self.src[self.inp]
            self.inp += 1
        buf[e] = value
        if e < MAX_MATCH_LEN:
            buf[BUF_SIZE + e] = value
        self.wind_e = 0 if e + 1 == BUF_SIZE else e + 1
        self.wind_b = 0 if self.wind_b + 1 == BUF_SIZE else self.wind_b + 1

    def _pos2off(self, pos: int) -> int:
        if self.wind_b > pos:
            return self.wind_b - pos
        return BUF_SIZE - (pos - self.wind_b)

    def _reset_next_input_entry(self) -> None:
        if self.cycle1_countdown == 0:
            pos = self.wind_e
            key = self._key3(pos)
            self.chain_sz[key] = (self.chain_sz[key] - 1) & 0xFFFF
            key = self._key2(pos)
            if self.head2[key] == pos:
                self.head2[key] = _NIL
        else:
            self.cycle1_countdown -= 1

    def _skip_advance3(self) -> None:
        wb = self.wind_b
        key = self._key3(wb)
        self.chain[wb] = self._head3_of(key)
        self.head3[key] = wb
        self.best_len[wb] = MAX_MATCH_LEN + 1
        self.chain_sz[key] = (self.chain_sz[key] + 1) & 0xFFFF

    def _advance(self, lb_len: int, skip: bool) -> tuple[int, int]:
        """Step the window; returns the best match as (offset, length)."""
        if skip:
            for _ in range(lb_len - 1):
                self._reset_next_input_entry()
                self._skip_advance3()
                self.head2[self._key2(self.wind_b)] = self.wind_b
                self._get_byte()

        lb_len = 1
        lb_off = 0
        lb_pos = 0
        best_pos = [0] * MAX_MATCH_BY_LENGTH_LEN

        wb = self.wind_b
        key = self._key3(wb)
        match_pos = self._head3_of(key)
        self.chain[wb] = match_pos
        match_count = min(self.chain_sz[key], MAX_MATCH_LEN)
        self.chain_sz[key] = (self.chain_sz[key] + 1) & 0xFFFF
        self.head3[key] = wb

        best_char = self.buffer[wb]
        first_len = lb_len
        wind_sz = self.wind_sz
        if lb_len >= wind_sz:
            if wind_sz == 0:
                best_char = -1
            lb_off = 0
            self.best_len[wb] = MAX_MATCH_LEN + 1
        else:
            pos2 = self.head2[self._key2(wb)]
            found = pos2 != _NIL
            if found:
                if best_pos[2] == 0:
                    best_pos[2] = pos2 + 1
                if lb_len < 2:
                    lb_len = 2
                    lb_pos = pos2
            if found and wind_sz >= 3:
                for _ in range(match_count):
                    # An unset chain link would leave the window: nothing more to follow.
                    if match_pos >= BUF_SIZE:
                        break
                    match_len = _common_prefix(self.buffer, wb, match_pos, wind_sz)
                    if match_len >= 2:
                        if match_len < MAX_MATCH_BY_LENGTH_LEN and best_pos[match_len] == 0:
                            best_pos[match_len] = match_pos + 1
                        if match_len > lb_len:
                            lb_len = match_len
                            lb_pos = match_pos
                            if match_len == wind_sz or match_len > self.best_len[match_pos]:
                                break
                    match_pos = self.chain[match_pos]
            if lb_len > first_len:
                lb_off = self._pos2off(lb_pos)
            self.best_len[wb] = lb_len & 0xFFFF
            for length in range(2, MAX_MATCH_BY_LENGTH_LEN):
                pos = best_pos[length]
                self.best_off[length] = self._pos2off(pos - 1) if pos > 0 else 0

        self._reset_next_input_entry()
        self.head2[self._key2(self.wind_b)] = self.wind_b
        self._get_byte()

        if best_char < 0:
            self.buf_sz = 0
            lb_len = 0
        else:
            self.buf_sz = self.wind_sz + 1
        self.bufp = self.inp - self.buf_sz
        return lb_off, lb_len

    # --- output --------------------------------------------------------

    def _need_out(self, count: int) -> None:
        if len(self.out) + count > self.max_size:
            raise OutputOverrunError(output=self.out)

    def _write_zero_byte_length(self, length: int) -> None:
        while length > 255:
            self.out.append(0)
            length -= 255
        self.out.append(length)

    def _find_better_match(self, lb_len: int, lb_off: int) -> tuple[int, int]:
        best_off = self.best_off
        if lb_len <= M2_MIN_LEN or lb_off <= M2_MAX_OFFSET:
            return lb_len, lb_off
        if (
            lb_off > M2_MAX_OFFSET
            and M2_MIN_LEN + 1 <= lb_len <= M2_MAX_LEN + 1
            and best_off[lb_len - 1] != 0
            and best_off[lb_len - 1] <= M2_MAX_OFFSET
        ):
            lb_len -= 1
            lb_off = best_off[lb_len]
        elif (
            lb_off > M3_MAX_OFFSET
            and M4_MAX_LEN + 1 <= lb_len <= M2_MAX_LEN + 2
            and best_off[lb_len - 2]
            and best_off[lb_len] <= M2_MAX_OFFSET
        ):
            lb_len -= 2
            lb_off = best_off[lb_len]
        elif (
            lb_off > M3_MAX_OFFSET
            and M4_MAX_LEN + 1 <= lb_len <= M3_MAX_LEN + 1
            and best_off[lb_len - 1] != 0
            and best_off[lb_len - 2] <= M3_MAX_OFFSET
        ):
            lb_len -= 1
            lb_off = best_off[lb_len]
        return lb_len, lb_off

    def _encode_literal_run(self, lit_ptr: int, lit_len: int) -> None:
        out = self.out
        if not out and lit_len <= 238:
            self._need_out(1)
            out.append(17 + lit_len)
        elif lit_len <= 3:
            out[-2] |= lit_len
        elif lit_len <= 18:
            self._need_out(1)
            out.append(lit_len - 3)
        else:
            self._need_out((lit_len - 18) // 255 + 2)
            out.append(0)
            self._write_zero_byte_length(lit_len - 18)
        self._need_out(lit_len)
        out += self.src[lit_ptr : lit_ptr + lit_len]

    def _encode_lookback_match(self, lb_len: int, lb_off: int, last_lit_len: int) -> None:
        out = self.out
        if lb_len == 2:
            lb_off -= 1
            self._need_out(2)
            out.append(M1_MARKER | ((lb_off & 0x3) << 2))
            out.append((lb_off >> 2) & 0xFF)
        elif lb_len <= M2_MAX_LEN and lb_off <= M2_MAX_OFFSET:
            lb_off -= 1
            self._need_out(2)
            out.append((((lb_len - 1) << 5) | ((lb_off & 0x7) << 2)) & 0xFF)
            out.append((lb_off >> 3) & 0xFF)
        elif lb_len == M2_MIN_LEN and lb_off <= M1_MAX_OFFSET + M2_MAX_OFFSET and last_lit_len >= 4:
            lb_off -= 1 + M2_MAX_OFFSET
            self._need_out(2)
            out.append(M1_MARKER | ((lb_off & 0x3) << 2))
            out.append((lb_off >> 2) & 0xFF)
        elif lb_off <= M3_MAX_OFFSET:
            lb_off -= 1
            if lb_len <= M3_MAX_LEN:
                self._need_out(1)
                out.append(M3_MARKER | (lb_len - 2))
            else:
                lb_len -= M3_MAX_LEN
                self._need_out(lb_len // 255 + 2)
                out.append(M3_MARKER)
                self._write_zero_byte_length(lb_len)
            self._need_out(2)
            out.append((lb_off << 2) & 0xFF)
            out.append((lb_off >> 6) & 0xFF)
        else:
            lb_off -= 0x4000
            high = (lb_off & 0x4000) >> 11
            if lb_len <= M4_MAX_LEN:
                self._need_out(1)
                out.append((M4_MARKER | high | (lb_len - 2)) & 0xFF)
            else:
                lb_len -= M4_MAX_LEN
                self._need_out(lb_len // 255 + 2)
                out.append(M4_MARKER | high)
                self._write_zero_byte_length(lb_len)
            self._need_out(2)
            out.append((lb_off << 2) & 0xFF)
            out.append((lb_off >> 6) & 0xFF)

    def run(self) -> bytes:
        lit_len = 0
        lit_ptr = self.inp
        lb_off, lb_len = self._advance(0, False)
        while self.buf_sz > 0:
            if lit_len == 0:
                lit_ptr = self.bufp
            at_start = not self.out
            if (
                lb_len < 2
                or (lb_len == 2 and (lb_off > M1_MAX_OFFSET or lit_len == 0 or lit_len >= 4))
                or (lb_len == 2 and at_start)
                or (at_start and lit_len == 0)
            ):
                lb_len = 0
            elif lb_len == M2_MIN_LEN and lb_off > M1_MAX_OFFSET + M2_MAX_OFFSET and lit_len >= 4:
                lb_len = 0
            if lb_len == 0:
                lit_len += 1
                lb_off, lb_len = self._advance(lb_len, False)
                continue
            lb_len, lb_off = self._find_better_match(lb_len, lb_off)
            self._encode_literal_run(lit_ptr, lit_len)
            self._encode_lookback_match(lb_len, lb_off, lit_len)
            lit_len = 0
            lb_off, lb_len = self._advance(lb_len, True)

        self._encode_literal_run(lit_ptr, lit_len)
        self._need_out(3)
        self.out += bytes((M4_MARKER | 1, 0, 0))
        return bytes(self.out)


def compress(src: bytes, max_size: int | None = None) -> bytes:
    """Encode ``src`` as an LZO1X stream of at most ``max_size`` bytes.

    Without ``max_size`` the worst-case size for the input is allowed.
    Raises ``OutputOverrunError`` when the stream would not fit.
    """
    data = bytes(src)
    if max_size is None:
        max_size = compress_worst_size(len(data))
    return _Compressor(data, max_size).run()