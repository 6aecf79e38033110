import asyncio

import bcrypt

BCRYPT_ROUNDS = 12


async def hash_password_async(password: str) -> str:
    loop = asyncio.get_running_loop()
    # Generate a salt with the recommended number of rounds
    salt = await loop.run_in_executor(None, bcrypt.gensalt, BCRYPT_ROUNDS)
    # Hash the password using the generated salt
    hashed_password = await loop.run_in_executor(
        None, bcrypt.hashpw, password.encode('utf-8'), salt
    )
    return hashed_password.decode('utf-8')

async def verify_password_async(password: str, hashed_password: str) -> bool:
    # Verify the password against the stored hash
    loop = asyncio.get_running_loop()
    is_valid = await loop.run_in_executor(
        None, bcrypt.checkpw, password.encode('utf-8'), hashed_password.encode('utf-8')
    )
    return is_valid
