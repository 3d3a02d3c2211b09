from libedugit.binary import bytes_equal, decode_base64, encode_base64, is_binary, to_bytes


def test_to_bytes_normalizes_input() -> None:
    assert to_bytes(None) == b''
    assert to_bytes('héllo') == 'héllo'.encode()
    assert to_bytes(b'raw') == b'raw'
    assert to_bytes(bytearray(b'array')) == b'array'


def test_base64() -> None:
    assert encode_base64(b'hello') == 'aGVsbG8='
    assert encode_base64('hello') == 'aGVsbG8='
    assert decode_base64('aGVsbG8=') == b'hello'
    assert decode_base64('') == b''


def test_is_binary() -> None:
    assert not is_binary(b'')
    assert not is_binary(None)
    assert not is_binary('plain text\n'.encode())
    assert not is_binary('ünïcode'.encode())
    assert is_binary(b'\xff\xfe\x00\x80')


def test_bytes_equal() -> None:
    assert bytes_equal(b'abc', b'abc')
    assert bytes_equal(b'', b'')
    assert not bytes_equal(b'abc', b'abd')
    assert not bytes_equal(b'abc', b'abcd')
