from variant_tagger.utils.security import is_valid_hmac, sign

BODY = b'{"id":42,"variants":[{"id":7}]}'


def test_valid_signature_accepted():
    assert is_valid_hmac("hush", BODY, sign("hush", BODY))


def test_single_byte_change_invalidates():
    sig = sign("hush", BODY)
    tampered = BODY.replace(b"42", b"43")
    assert not is_valid_hmac("hush", tampered, sig)


def test_wrong_secret_or_missing_parts_rejected():
    sig = sign("hush", BODY)
    assert not is_valid_hmac("other", BODY, sig)
    assert not is_valid_hmac("hush", BODY, "")
    assert not is_valid_hmac("hush", BODY, None)
    assert not is_valid_hmac(None, BODY, sig)


def test_reserialized_json_does_not_verify():
    import json
    sig = sign("hush", BODY)
    again = json.dumps(json.loads(BODY)).encode()
    assert again != BODY
    assert not is_valid_hmac("hush", again, sig)
