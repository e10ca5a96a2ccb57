#
# (c) Copyright 2022 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# Wrappers for our crypto libraries. AKA API Cleanup
#
# My standards:
# - pubkeys: 65 bytes, always uncompressed (04 prefix), because ethereum
# - private key: 32 bytes
# - signature: 64 bytes (r, s) or 65 bytes if recoverable (r, s, v) with v=27/28
# - no DER, no PEM, no other serializations
# - message digests (for sig/recover) are already digested
# - recovery failures are ValueError, whatever the library raises
#
from Crypto.Hash import keccak
from coincurve import PrivateKey, PublicKey

__all__ = [ 'keccak256', 'CT_sig_to_pubkey', 'CT_sign',
            'CT_pick_keypair', 'CT_priv_to_pubkey' ]

def keccak256(msg):
    # single-shot Keccak-256 (not SHA3-256, ethereum predates the padding change)
    return keccak.new(digest_bits=256, data=msg).digest()

def CT_sig_to_pubkey(msg_digest, sig):
    # returns a pubkey (65 bytes)
    assert len(sig) == 65
    assert len(msg_digest) == 32

    v = sig[64]
    if v not in (27, 28):
        raise ValueError(f'Recovery id must be 27 or 28, saw: {v}')

    try:
        pub = PublicKey.from_signature_and_message(sig[0:64] + bytes([v - 27]),
                                                   msg_digest, hasher=None)
    except Exception as exc:
        # r not on curve, zero values, etc.
        raise ValueError(f'Unable to recover pubkey: {exc}') from exc

    return pub.format(compressed=False)

def CT_pick_keypair():
    # Choose pub/private pair, return private key (32 bytes) and uncompressed pubkey
    pk = PrivateKey()
    return pk.secret, pk.public_key.format(compressed=False)

def CT_priv_to_pubkey(priv):
    assert len(priv) == 32
    return PrivateKey(priv).public_key.format(compressed=False)

def CT_sign(privkey, msg_digest, recoverable=False):
    # deterministic (RFC6979) and always low-s, because libsecp256k1
    assert len(msg_digest) == 32
    sig = PrivateKey(privkey).sign_recoverable(msg_digest, hasher=None)
    if recoverable:
        return sig[0:64] + bytes([27 + sig[64]])
    return sig[0:64]

# EOF
