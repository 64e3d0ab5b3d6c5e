# Internal
import asyncio
import json
import logging
import os
import sys
from datetime import timedelta

# Project
from welfare.__version__ import __version__
from welfare.data_structures.registry_config import RegistryConfig
from welfare.data_structures.run_summary import RunSummary
from welfare.engine.modules.database import Database
from welfare.engine.modules.datetime_manager import DatetimeManager
from welfare.engine.modules.directory import MemberDirectory
from welfare.engine.modules.dispatcher import DeliveryDispatcher
from welfare.engine.modules.ledger import ReminderLedger
from welfare.engine.modules.mailer import Mailer, build_mailer
from welfare.engine.modules.reminder_engine import ReminderEngine
from welfare.engine.modules.scheduler import Scheduler
from welfare.engine.modules.special_dates import SpecialDateManager

logging.basicConfig(level=logging.INFO)


class WelfareRegistry:
    """
    Application runner for the welfare registry reminder service.

    Loads the configuration, wires the stores, mail transport and reminder
    engine together, and keeps the daily scheduler alive.

    Attributes:
        registry_config_file (str): Path to the registry configuration file
        secrets_file (str): Path to the secrets configuration file
        debug_mode (bool): Whether to log at DEBUG level
    """

    def __init__(
            self,
            registry_config_file: str,
            secrets_file: str,
            debug_mode=False
    ):
        """
        Initialize the WelfareRegistry with configuration files and debug settings.

        Args:
            registry_config_file (str): Path to the registry configuration file
            secrets_file (str): Path to the secrets file containing mail credentials
            debug_mode (bool, optional): Enable debug logging. Defaults to False.
        """
        self.version = __version__
        self.debug_mode = debug_mode

        self.config: RegistryConfig | None = None
        self.config_file = registry_config_file
        self.secrets_file = secrets_file

        self.datetime_manager: DatetimeManager | None = None
        self.database: Database | None = None
        self.directory: MemberDirectory | None = None
        self.special_dates: SpecialDateManager | None = None
        self.ledger: ReminderLedger | None = None
        self.mailer: Mailer | None = None
        self.engine: ReminderEngine | None = None
        self.scheduler: Scheduler | None = None

        if debug_mode:
            logging.getLogger().setLevel(logging.DEBUG)

    async def run(self) -> None:
        """
        Start the service and keep it running.

        Will attempt to restart after 60 seconds if an error occurs.
        """
        try:
            await self.load_config_params()

            if self.config.reminders.run_on_startup:
                logging.info("Running initial reminder check")
                await self.scheduler.run_once()

            while self.scheduler.running:
                await asyncio.sleep(60)

        except Exception as exc:
            logging.exception(exc)

            await self.close()
            await asyncio.sleep(60)

            await self.run()

    def _create_templates_if_missing(self) -> bool:
        files_created = False

        if not os.path.exists(self.config_file):
            logging.info(f"Configuration file {self.config_file} not found. Creating empty template.")
            empty_registry_config = {
                "organization_name": "Welfare Registry",
                "database_path": "database/welfare_database.json",
                "reminders": {
                    "daily_time": "08:00",
                    "utc_offset_hours": 1,
                    "max_retries": 3,
                    "retry_delay_minutes": 60,
                    "retry_sweep_minutes": 60,
                    "send_delay_seconds": 1.0,
                    "send_timeout_seconds": 10.0,
                    "run_on_startup": False
                }
            }
            with open(self.config_file, 'w', encoding='utf8') as f:
                json.dump(empty_registry_config, f, indent=2)
            files_created = True

        if not os.path.exists(self.secrets_file):
            logging.info(f"Secrets file {self.secrets_file} not found. Creating empty template.")
            empty_secrets = {
                "secrets": {
                    "provider": "smtp",
                    "smtp_host": "smtp.gmail.com",
                    "smtp_port": 587,
                    "smtp_user": "",
                    "smtp_password": "",
                    "mail_from": "",
                    "resend_api_key": ""
                }
            }
            with open(self.secrets_file, 'w', encoding='utf8') as f:
                json.dump(empty_secrets, f, indent=2)
            files_created = True

        return files_created

    def read_config(self) -> RegistryConfig:
        with open(self.config_file, encoding='utf8') as config_file:
            with open(self.secrets_file, encoding='utf8') as secret_file:
                registry_config = json.loads(config_file.read())

                registry_config.update(
                    json.loads(secret_file.read())
                )

                return RegistryConfig(**registry_config)

    async def load_config_params(self) -> None:
        """
        Load the configuration and initialize every service.

        If configuration files don't exist, creates empty templates and exits.
        """
        logging.info(f'Welfare Registry v{__version__} - Loading params')

        if self._create_templates_if_missing():
            logging.info("Empty configuration files have been created. Please fill them with appropriate values and restart.")
            sys.exit(0)

        self.config = self.read_config()
        reminders = self.config.reminders

        self.datetime_manager = DatetimeManager(reminders.utc_offset_hours)
        self.database = Database(self.config.database_path)
        self.directory = MemberDirectory(self.database, self.datetime_manager)
        self.special_dates = SpecialDateManager(self.database, self.datetime_manager)
        self.ledger = ReminderLedger(
            self.database,
            self.datetime_manager,
            max_retries=reminders.max_retries,
            retry_delay=timedelta(minutes=reminders.retry_delay_minutes)
        )
        self.mailer = build_mailer(self.config.secrets, timeout=reminders.send_timeout_seconds)

        self.engine = ReminderEngine(
            special_dates=self.special_dates,
            directory=self.directory,
            ledger=self.ledger,
            dispatcher=DeliveryDispatcher(
                self.mailer,
                self.datetime_manager,
                send_delay=reminders.send_delay_seconds,
                send_timeout=reminders.send_timeout_seconds
            ),
            datetime_manager=self.datetime_manager,
            organization_name=self.config.organization_name,
        )

        self.scheduler = Scheduler(self.engine, self.datetime_manager)
        self.scheduler.start(
            daily_time=reminders.daily_time,
            utc_offset_hours=reminders.utc_offset_hours,
            retry_sweep_minutes=reminders.retry_sweep_minutes
        )

        if not await self.engine.verify_mail_transport():
            logging.warning("Mail transport could not be verified, reminders will be recorded as failed")

        logging.info('Loading finished')

    async def trigger_reminders(self) -> RunSummary:
        """Admin-initiated "send now": runs the same pipeline as the daily job."""
        logging.info("Manual reminder trigger initiated")
        return await self.scheduler.run_once()

    async def close(self) -> None:
        if self.scheduler:
            self.scheduler.stop()
        if self.mailer:
            await self.mailer.close()
        if self.database:
            self.database.close()
