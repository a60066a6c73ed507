"""Core client logic

Module Structure:
    - http/          : Token lifecycle, authenticated executor, transport chain
    - users.py       : /users operations (UserService, User, UserUpdate)
    - zip_codes.py   : /zip-codes operations (ZipCodeService)

Usage Pattern:
    Import explicitly when needed:
        from userapi.core.http import AuthenticatingRequestExecutor, get_credential_manager
        from userapi.core.users import UserService, User
        from userapi.core.zip_codes import ZipCodeService
"""
