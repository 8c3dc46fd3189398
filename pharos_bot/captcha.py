import asyncio
from typing import Optional
from aiohttp import ClientSession, ClientTimeout, TCPConnector
from httpx import AsyncClient

from pharos_bot.logger import logger
from pharos_bot.proxy import create_ssl_context


class Capsolver:

    def __init__(self, api_key: str, session: AsyncClient):
        self.api_key = api_key
        self.base_url = "https://api.capsolver.com"
        self.session = session

    async def create_recaptcha_task(self, sitekey: str, pageurl: str) -> Optional[str]:
        payload = {
            "clientKey": self.api_key,
            "task": {
                "type": "ReCaptchaV2TaskProxyLess",
                "websiteURL": pageurl,
                "websiteKey": sitekey,
            },
        }
        try:
            response = await self.session.post(f"{self.base_url}/createTask", json=payload, timeout=30)
            result = response.json()

            if result.get("errorId", 0) == 0 and result.get("taskId"):
                return result["taskId"]

            logger.error(f"Error creating reCAPTCHA task with Capsolver: {result.get('errorDescription', result)}")
            return None

        except Exception as e:
            logger.error(f"Error creating reCAPTCHA task with Capsolver: {e}")
            return None

    async def get_task_result(self, task_id: str, max_attempts: int = 30) -> Optional[str]:
        payload = {"clientKey": self.api_key, "taskId": task_id}

        for _ in range(max_attempts):
            try:
                response = await self.session.post(f"{self.base_url}/getTaskResult", json=payload, timeout=30)
                result = response.json()

                if result.get("errorId", 0) > 0:
                    logger.error(f"Capsolver error: {result.get('errorDescription', result)}")
                    return None

                status = result.get("status")
                if status == "ready":
                    return result.get("solution", {}).get("gRecaptchaResponse")
                elif status in ["idle", "processing"]:
                    await asyncio.sleep(2)
                    continue
                else:
                    logger.error(f"Unexpected Capsolver task status: {status}")
                    return None

            except Exception as e:
                logger.error(f"Error getting result with Capsolver: {e}")
                return None

        logger.error("Max polling attempts reached without getting a result with Capsolver")
        return None

    async def solve_recaptcha(self, sitekey: str, pageurl: str) -> Optional[str]:
        task_id = await self.create_recaptcha_task(sitekey, pageurl)
        if not task_id:
            return None
        return await self.get_task_result(task_id)


class TwoCaptcha:

    def __init__(self, api_key: str):
        self.api_key = api_key
        self.base_url = "http://2captcha.com"
        self.ssl_context = create_ssl_context()

    async def solve_recaptcha(self, sitekey: str, pageurl: str, retries: int = 5) -> Optional[str]:
        for attempt in range(retries):
            try:
                connector = TCPConnector(ssl=self.ssl_context)
                async with ClientSession(connector=connector, timeout=ClientTimeout(total=60)) as session:
                    url = f"{self.base_url}/in.php?key={self.api_key}&method=userrecaptcha&googlekey={sitekey}&pageurl={pageurl}"
                    async with session.get(url=url) as response:
                        response.raise_for_status()
                        result = await response.text()

                    if 'OK|' not in result:
                        logger.warning(f"2Captcha response: {result}")
                        await asyncio.sleep(5)
                        continue

                    request_id = result.split('|')[1]
                    logger.debug(f"2Captcha Request ID: {request_id}")

                    for _ in range(30):
                        res_url = f"{self.base_url}/res.php?key={self.api_key}&action=get&id={request_id}"
                        async with session.get(url=res_url) as res_response:
                            res_response.raise_for_status()
                            res_result = await res_response.text()

                        if 'OK|' in res_result:
                            logger.success("reCAPTCHA solved successfully via 2Captcha")
                            return res_result.split('|', 1)[1]
                        elif res_result == "CAPCHA_NOT_READY":
                            await asyncio.sleep(5)
                            continue
                        else:
                            logger.warning(f"2Captcha result: {res_result}")
                            break

            except Exception as e:
                if attempt < retries - 1:
                    await asyncio.sleep(5)
                    continue
                logger.error(f"2Captcha error: {str(e)}")
                return None

        return None


class CaptchaSolver:

    def __init__(self, provider: str, api_key: str, enabled: bool = True):
        self.provider = provider.lower()
        self.api_key = api_key
        self.enabled = enabled

        if enabled and not api_key:
            logger.warning(f"No API key provided for {provider}")

    async def solve_recaptcha(self, sitekey: str, pageurl: str) -> Optional[str]:
        if not self.api_key:
            logger.error("Captcha API key is not set")
            return None

        logger.info(f"Solving reCAPTCHA using {self.provider.upper()}...")

        if self.provider == "capsolver":
            async with AsyncClient(timeout=60) as client:
                solver = Capsolver(api_key=self.api_key, session=client)
                return await solver.solve_recaptcha(sitekey, pageurl)

        elif self.provider == "2captcha":
            solver = TwoCaptcha(api_key=self.api_key)
            return await solver.solve_recaptcha(sitekey, pageurl)

        logger.error(f"Unknown captcha provider: {self.provider}")
        return None
