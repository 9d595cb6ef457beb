# main.py
import asyncio
import logging

from aiogram import Bot, Dispatcher, Router, types
from aiogram.client.default import DefaultBotProperties
from aiogram.exceptions import TelegramAPIError
from aiogram.fsm.storage.memory import MemoryStorage
from supabase import AsyncClientOptions, acreate_client

from config_reader import config
from database.db_supabase import Database
from handlers import admin_handlers, auth_handlers, client_handlers, common_handlers
from stores.accounts import AccountProvisioner
from utils.scheduler import setup_scheduler
from utils.session import SessionRegistry

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(name)s - %(message)s")
logger = logging.getLogger(__name__)

# Global error handler
error_router = Router()


@error_router.errors()
async def error_handler(event: types.ErrorEvent):
    update = event.update
    exception = event.exception
    logger.error(f"Unhandled error while processing update {update.update_id}")
    logger.exception(exception)
    if not config.admin_chat_id:
        return True
    try:
        await update.bot.send_message(
            config.admin_chat_id,
            f"<b>❗️ Bot error</b>\n"
            f"<b>Type:</b> {type(exception).__name__}\n<b>Error:</b> {exception}"
        )
    except TelegramAPIError as e:
        logger.error(f"Could not report the error to the admin chat: {e}")
    return True


async def new_user_client():
    # One client per signed-in user; tokens are refreshed by the scheduler
    return await acreate_client(
        config.supabase_url,
        config.supabase_key,
        options=AsyncClientOptions(auto_refresh_token=False, persist_session=False),
    )


async def main():
    logger.info("Starting bot in polling mode...")

    db = await Database.connect(config.supabase_url, config.supabase_key)
    sessions = SessionRegistry(new_user_client)
    provisioner = AccountProvisioner(config.provisioning_url)

    storage = MemoryStorage()
    default_properties = DefaultBotProperties(parse_mode="HTML")
    bot = Bot(token=config.bot_token, default=default_properties)
    dp = Dispatcher(storage=storage)

    # Error handler first; common last so its dashboard fallbacks only see rejected users
    dp.include_router(error_router)
    dp.include_router(auth_handlers.router)
    dp.include_router(client_handlers.router)
    dp.include_router(admin_handlers.router)
    dp.include_router(common_handlers.router)

    scheduler = setup_scheduler(sessions, config.timezone, config.session_refresh_margin_seconds)
    scheduler.start()

    await bot.delete_webhook(drop_pending_updates=True)

    try:
        await dp.start_polling(bot, db=db, sessions=sessions, provisioner=provisioner)
    finally:
        logger.info("Bot stopped.")
        if scheduler.running:
            scheduler.shutdown()
        for telegram_id in sessions.telegram_ids():
            await sessions.sign_out(telegram_id)
        await bot.session.close()


def run():
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logger.info("Bot execution stopped by user.")


if __name__ == "__main__":
    run()
