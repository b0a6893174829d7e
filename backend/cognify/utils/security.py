"""
安全工具模块
提供密码哈希和验证功能
直接使用 bcrypt 库，固定 cost 为 10
"""

import bcrypt
from loguru import logger
from starlette.concurrency import run_in_threadpool

BCRYPT_ROUNDS = 10
# bcrypt 只使用前 72 字节
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode('utf-8')[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """
    生成密码哈希
    每次调用生成新的随机 salt，相同明文得到不同哈希
    """
    try:
        password_bytes = _password_bytes(password)
        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        hashed_bytes = bcrypt.hashpw(password_bytes, salt)
        return hashed_bytes.decode('utf-8')
    except Exception as e:
        logger.error(f"密码哈希失败: {e}")
        raise


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    验证密码
    不匹配或哈希格式错误时返回 False，不抛出异常
    """
    try:
        plain_bytes = _password_bytes(plain_password)
        hashed_bytes = hashed_password.encode('utf-8')
        return bcrypt.checkpw(plain_bytes, hashed_bytes)
    except Exception as e:
        logger.warning(f"密码验证失败: {e}")
        return False


async def hash_password_async(password: str) -> str:
    """在线程池中计算哈希，避免阻塞事件循环"""
    return await run_in_threadpool(hash_password, password)


async def verify_password_async(plain_password: str, hashed_password: str) -> bool:
    return await run_in_threadpool(verify_password, plain_password, hashed_password)
