import base64
import binascii

from nacl import encoding, exceptions, public

from .errors import EncryptionError

def encrypt_plaintext(plaintext, public_key_b64):
    '''
    Seals `plaintext` for GitHub with libsodium's anonymous sealed box, using the base64 encoded
    public key GitHub hands out for Actions, Dependabot and Codespaces secrets. Returns the
    ciphertext base64 encoded, ready to send as `encrypted_value`.
    '''
    try:
        key_bytes = base64.b64decode(public_key_b64, validate=True)
    except (binascii.Error, ValueError, TypeError) as err:
        raise EncryptionError('Unable to decode public key: {}'.format(err)) from err

    if len(key_bytes) != public.PublicKey.SIZE:
        raise EncryptionError('Public key must be {} bytes, got {}'.format(public.PublicKey.SIZE, len(key_bytes)))

    try:
        sealed_box = public.SealedBox(public.PublicKey(key_bytes))
        encrypted = sealed_box.encrypt(plaintext.encode('utf-8'))
    except exceptions.CryptoError as err:
        raise EncryptionError('Unable to encrypt secret: {}'.format(err)) from err

    return encoding.Base64Encoder.encode(encrypted).decode('utf-8')
