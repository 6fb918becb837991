"""
MindPair — Comparison content tables (Persian).

Static narrative content consumed by the comparison engine.  Every lookup
is keyed; the engine treats a missing key as a content defect and raises
``ConfigurationError`` rather than rendering empty text.
"""

from __future__ import annotations

# ──────────────────────────────────────────────────────────────────────────────
# Questionnaire items (index 0..11)
# ──────────────────────────────────────────────────────────────────────────────

QUESTION_TEXTS: tuple[str, ...] = (
    "وقتی یه فکر یا موضوع توی ذهنم می‌افته، حتی وقتی می‌دونم بی‌فایده‌ست، باز ذهنم ولش نمی‌کنه.",
    "وقتی اشتباهی می‌کنم، ذهنم مدام صحنه رو مرور می‌کنه و خودمو سرزنش می‌کنم.",
    "وقتی بین چند تا انتخاب گیر می‌کنم، اون‌قدر تحلیل می‌کنم که تصمیم‌گیری برام سخت یا غیرممکن می‌شه.",
    "بعضی وقتا هم از گذشته ناراحت می‌شم، هم از آینده می‌ترسم؛ انگار ذهنم بینشون رفت‌و‌برگشت داره.",
    "وقتی زندگی بقیه رو می‌بینم، ذهنم سریع می‌ره سمت مقایسه و حسِ کمبود.",
    "توی رابطه‌هام، یه پیام یا رفتار کوچیک باعث می‌شه تو ذهنم سناریوهای منفی بسازم.",
    "وقتی اضطراب می‌گیرم، سعی می‌کنم با فکر کردن زیاد آروم بشم، ولی معمولاً اضطرابم بیشتر می‌شه.",
    "ذهنم زیاد برمی‌گرده عقب تا اشتباه‌ها یا گفتگوهای قبلی رو مرور و «اصلاح» کنه.",
    "بعضی وقتا حس می‌کنم اگه زیاد درباره‌ی یه موضوع فکر نکنم، یه چیز مهم از دستم می‌ره.",
    "حس می‌کنم ذهنم خودش شروع می‌کنه به فکر کردن و نمی‌تونم متوقفش کنم.",
    "وقتی ذهنم شلوغ می‌شه، معمولاً می‌فهمم و می‌تونم از چرخه فکر بیام بیرون.",
    "وقتی اشتباه یا مشکل پیش میاد، سعی می‌کنم بپذیرمش و ذهنمو به چیز دیگه مشغول کنم.",
)

# ──────────────────────────────────────────────────────────────────────────────
# Per-question insights keyed by category
# ──────────────────────────────────────────────────────────────────────────────

QUESTION_INSIGHTS: tuple[dict[str, str], ...] = (
    {
        "same": "هر دو نفر در این موقعیت ذهنی واکنش مشابهی دارید و احتمالاً می‌تونید همدیگه رو درک کنین.",
        "close": "واکنش‌های ذهنی شما در این موقعیت نزدیک به همه و احتمالاً درک متقابل خوبی دارید.",
        "different": "اینجا یکی از شما ممکنه بیشتر درگیر فکر بشه و دیگری کمتر، که می‌تونه منبع سوءتفاهم باشه.",
        "very_different": "در این موقعیت، واکنش‌های ذهنی شما خیلی متفاوته و ممکنه نیاز به توضیح بیشتر داشته باشه.",
    },
    {
        "same": "هر دو نفر بعد از اشتباه، واکنش مشابهی نشون می‌دین و احتمالاً می‌تونید همدیگه رو درک کنین.",
        "close": "واکنش‌های شما بعد از اشتباه نزدیک به همه و احتمالاً درک متقابل خوبی دارید.",
        "different": "اینجا یکی از شما ممکنه بیشتر خودش رو سرزنش کنه و دیگری کمتر، که می‌تونه منبع سوءتفاهم باشه.",
        "very_different": "در این موقعیت، واکنش‌های شما بعد از اشتباه خیلی متفاوته و ممکنه نیاز به توضیح بیشتر داشته باشه.",
    },
    {
        "same": "هر دو نفر در تصمیم‌گیری، الگوی مشابهی دارید و احتمالاً می‌تونید همدیگه رو درک کنین.",
        "close": "الگوهای تصمیم‌گیری شما نزدیک به همه و احتمالاً درک متقابل خوبی دارید.",
        "different": "اینجا یکی از شما ممکنه بیشتر تحلیل کنه و دیگری کمتر، که می‌تونه منبع سوءتفاهم باشه.",
        "very_different": "در تصمیم‌گیری، الگوهای شما خیلی متفاوته و ممکنه نیاز به توضیح بیشتر داشته باشه.",
    },
    {
        "same": "هر دو نفر در رابطه با گذشته و آینده، واکنش مشابهی دارید و احتمالاً می‌تونید همدیگه رو درک کنین.",
        "close": "واکنش‌های شما نسبت به گذشته و آینده نزدیک به همه و احتمالاً درک متقابل خوبی دارید.",
        "different": "اینجا یکی از شما ممکنه بیشتر بین گذشته و آینده در رفت‌و‌برگشت داشته باشه و دیگری کمتر، که می‌تونه منبع سوءتفاهم باشه.",
        "very_different": "در این موقعیت، واکنش‌های شما نسبت به گذشته و آینده خیلی متفاوته و ممکنه نیاز به توضیح بیشتر داشته باشه.",
    },
    {
        "same": "هر دو نفر در مقایسه با دیگران، واکنش مشابهی دارید و احتمالاً می‌تونید همدیگه رو درک کنین.",
        "close": "واکنش‌های شما در مقایسه با دیگران نزدیک به همه و احتمالاً درک متقابل خوبی دارید.",
        "different": "اینجا یکی از شما ممکنه بیشتر به مقایسه بپردازه و دیگری کمتر، که می‌تونه منبع سوءتفاهم باشه.",
        "very_different": "در این موقعیت، واکنش‌های شما در مقایسه با دیگران خیلی متفاوته و ممکنه نیاز به توضیح بیشتر داشته باشه.",
    },
    {
        "same": "هر دو نفر در رابطه‌ها، واکنش مشابهی دارید و احتمالاً می‌تونید همدیگه رو درک کنین.",
        "close": "واکنش‌های شما در رابطه‌ها نزدیک به همه و احتمالاً درک متقابل خوبی دارید.",
        "different": "اینجا یکی از شما ممکنه بیشتر سناریوهای منفی بسازه و دیگری کمتر، که می‌تونه منبع سوءتفاهم باشه.",
        "very_different": "در رابطه‌ها، واکنش‌های شما خیلی متفاوته و ممکنه نیاز به توضیح بیشتر داشته باشه.",
    },
    {
        "same": "هر دو نفر در مواجهه با اضطراب، واکنش مشابهی دارید و احتمالاً می‌تونید همدیگه رو درک کنین.",
        "close": "واکنش‌های شما در مواجهه با اضطراب نزدیک به همه و احتمالاً درک متقابل خوبی دارید.",
        "different": "اینجا یکی از شما ممکنه بیشتر با فکر کردن سعی کنه اضطراب رو کنترل کنه و دیگری کمتر، که می‌تونه منبع سوءتفاهم باشه.",
        "very_different": "در مواجهه با اضطراب، واکنش‌های شما خیلی متفاوته و ممکنه نیاز به توضیح بیشتر داشته باشه.",
    },
    {
        "same": "هر دو نفر در مرور اشتباه‌ها، واکنش مشابهی دارید و احتمالاً می‌تونید همدیگه رو درک کنین.",
        "close": "واکنش‌های شما در مرور اشتباه‌ها نزدیک به همه و احتمالاً درک متقابل خوبی دارید.",
        "different": "اینجا یکی از شما ممکنه بیشتر به عقب برگرده و اشتباه‌ها رو مرور کنه و دیگری کمتر، که می‌تونه منبع سوءتفاهم باشه.",
        "very_different": "در مرور اشتباه‌ها، واکنش‌های شما خیلی متفاوته و ممکنه نیاز به توضیح بیشتر داشته باشه.",
    },
    {
        "same": "هر دو نفر در رابطه با فکر کردن زیاد، واکنش مشابهی دارید و احتمالاً می‌تونید همدیگه رو درک کنین.",
        "close": "واکنش‌های شما در رابطه با فکر کردن زیاد نزدیک به همه و احتمالاً درک متقابل خوبی دارید.",
        "different": "اینجا یکی از شما ممکنه بیشتر احساس کنه که باید زیاد فکر کنه و دیگری کمتر، که می‌تونه منبع سوءتفاهم باشه.",
        "very_different": "در این موقعیت، واکنش‌های شما نسبت به فکر کردن زیاد خیلی متفاوته و ممکنه نیاز به توضیح بیشتر داشته باشه.",
    },
    {
        "same": "هر دو نفر در کنترل فکرها، واکنش مشابهی دارید و احتمالاً می‌تونید همدیگه رو درک کنین.",
        "close": "واکنش‌های شما در کنترل فکرها نزدیک به همه و احتمالاً درک متقابل خوبی دارید.",
        "different": "اینجا یکی از شما ممکنه بیشتر احساس کنه که نمی‌تونه فکرها رو کنترل کنه و دیگری کمتر، که می‌تونه منبع سوءتفاهم باشه.",
        "very_different": "در کنترل فکرها، واکنش‌های شما خیلی متفاوته و ممکنه نیاز به توضیح بیشتر داشته باشه.",
    },
    {
        "same": "هر دو نفر در خروج از چرخه فکر، واکنش مشابهی دارید و احتمالاً می‌تونید همدیگه رو درک کنین.",
        "close": "واکنش‌های شما در خروج از چرخه فکر نزدیک به همه و احتمالاً درک متقابل خوبی دارید.",
        "different": "اینجا یکی از شما ممکنه بیشتر بتونه از چرخه فکر خارج بشه و دیگری کمتر، که می‌تونه منبع سوءتفاهم باشه.",
        "very_different": "در خروج از چرخه فکر، واکنش‌های شما خیلی متفاوته و ممکنه نیاز به توضیح بیشتر داشته باشه.",
    },
    {
        "same": "هر دو نفر در پذیرش اشتباه، واکنش مشابهی دارید و احتمالاً می‌تونید همدیگه رو درک کنین.",
        "close": "واکنش‌های شما در پذیرش اشتباه نزدیک به همه و احتمالاً درک متقابل خوبی دارید.",
        "different": "اینجا یکی از شما ممکنه بیشتر بتونه اشتباه رو بپذیره و ذهنش رو به چیز دیگه مشغول کنه و دیگری کمتر، که می‌تونه منبع سوءتفاهم باشه.",
        "very_different": "در پذیرش اشتباه، واکنش‌های شما خیلی متفاوته و ممکنه نیاز به توضیح بیشتر داشته باشه.",
    },
)

SIMILARITY_LABELS: dict[str, str] = {
        "high": "شباهت زیاد",
        "medium": "شباهت متوسط",
        "low": "شباهت کم",
        "very_different": "تفاوت زیاد",
}

# ──────────────────────────────────────────────────────────────────────────────
# Per-dimension relationship card
# ──────────────────────────────────────────────────────────────────────────────

DIMENSION_TITLES: dict[str, str] = {
    "stickiness": "چسبندگی فکری",
    "past_brooding": "گذشته‌محوری و خودسرزنشی",
    "future_worry": "آینده‌نگری و نگرانی",
    "interpersonal": "حساسیت بین‌فردی و سناریوسازی",
}

SIMILAR_TEXTS: dict[str, str] = {
    "stickiness":
        "«ذهن هر دو نفر از نظر گیر کردن روی فکرها شبیه هم عمل می‌کنه؛ یا هر دو زود عبور می‌کنن، یا هر دو مدت بیشتری درگیر می‌مونن. این شباهت معمولاً باعث می‌شه واکنش‌های ذهنی همدیگه قابل‌پیش‌بینی‌تر باشه.»",
    "past_brooding":
        "«هر دو ذهن در برخورد با اشتباه‌ها یا موقعیت‌های قبلی واکنش مشابهی دارن؛ یا هر دو زود عبور می‌کنن، یا هر دو بیشتر مرور می‌کنن. این شباهت می‌تونه درک متقابل رو ساده‌تر کنه.»",
    "future_worry":
        "«ذهن هر دو نفر در مواجهه با آینده واکنش مشابهی داره؛ یا هر دو نسبتاً آرام‌اند، یا هر دو بیشتر پیش‌بینی و نگرانی می‌کنن. این شباهت می‌تونه باعث هم‌فهمی در موقعیت‌های مبهم بشه.»",
    "interpersonal":
        "«هر دو نفر در رابطه‌ها حساسیت مشابهی دارن؛ یا هر دو زود سناریوسازی می‌کنن، یا هر دو کمتر وارد این فضا می‌شن. این شباهت معمولاً باعث می‌شه واکنش‌های رابطه‌ای قابل‌پیش‌بینی‌تر باشه.»",
}

DIFFERENT_TEXTS: dict[str, str] = {
    "stickiness":
        "«یکی از شما زود از فکرها عبور می‌کنه، در حالی که دیگری بیشتر درگیر می‌مونه. این تفاوت ممکنه به‌اشتباه به‌صورت «بی‌اهمیتی» یا «گیر دادن» برداشت بشه، در حالی که ریشه‌اش فقط تفاوت در سرعت رهاسازی ذهنه.»",
    "past_brooding":
        "«یکی از شما بعد از اشتباه سریع جلو می‌ره، در حالی که دیگری بیشتر به عقب برمی‌گرده و مرور می‌کنه. این تفاوت ممکنه به‌شکل «بی‌تفاوتی» در برابر «خودخوری» دیده بشه، اما در اصل تفاوت در نحوه‌ی پردازش گذشته است.»",
    "future_worry":
        "«یکی از شما بیشتر به آینده فکر می‌کنه و سعی می‌کنه همه‌چیز رو پیش‌بینی کنه، در حالی که دیگری کمتر درگیر این روند می‌شه. این تفاوت ممکنه به‌صورت «نگرانی زیاد» در برابر «سهل‌گیری» برداشت بشه، در حالی که فقط تفاوت در سبک مواجهه با آینده است.»",
    "interpersonal":
        "«یکی از شما از نشانه‌های کوچک سریع‌تر سناریو می‌سازه، در حالی که دیگری معمولاً ساده‌تر عبور می‌کنه. این تفاوت ممکنه به‌صورت «حساسیت زیاد» در برابر «بی‌توجهی» دیده بشه، در حالی که ریشه‌اش تفاوت در پردازش نشانه‌های رابطه‌ایه.»",
}

DEFINITIONS: dict[str, str] = {
    "stickiness":
        "چسبندگی فکری به میزان تمایل ذهن برای ماندن روی یک فکر، حتی پس از پایان موقعیت مربوط می‌شود. در روابط انسانی، این بُعد تعیین می‌کند آیا فرد می‌تواند از یک موضوع عبور کند یا آن را در تعامل‌های بعدی نیز با خود حمل می‌کند. سطح این بُعد بر طول و شدت درگیری‌های ذهنی و هیجانی در رابطه اثر می‌گذارد.",
    "past_brooding":
        "گذشته‌محوری به گرایش ذهن برای بازگشت مکرر به اشتباه‌ها، گفتگوها یا موقعیت‌های قبلی اشاره دارد. در روابط، این بُعد بر نحوه‌ی پردازش تعارض‌ها و خاطرات مشترک اثر می‌گذارد و تعیین می‌کند گذشته چقدر در حالِ رابطه حضور دارد. سطح آن می‌تواند تجربه‌ی تداوم یا پایان‌یافتگی موقعیت‌ها را تحت‌تأثیر قرار دهد.",
    "future_worry":
        "آینده‌نگری به میزان درگیری ذهن با پیش‌بینی، احتمال‌سنجی و تلاش برای کنترل اتفاق‌های پیشِ‌رو مربوط است. در روابط انسانی، این بُعد نقش مهمی در واکنش به ابهام، نااطمینانی و تصمیم‌های مشترک دارد. سطح آن مشخص می‌کند ذهن تا چه حد به آینده به‌عنوان منبع امنیت یا تهدید نگاه می‌کند.",
    "interpersonal":
        "حساسیت بین‌فردی به میزان توجه ذهن به نشانه‌های رفتاری، پیام‌ها و تغییرات ظریف در تعامل با دیگران اشاره دارد. در روابط، این بُعد بر نحوه‌ی تفسیر رفتار طرف مقابل و ساخت معنا از تعامل‌ها اثر می‌گذارد. سطح آن تعیین می‌کند ذهن تا چه حد فعالانه به دنبال معنا در رفتارهای بین‌فردی می‌گردد.",
}

RISK_LABELS: dict[str, str] = {
    "low": "الگوهای ذهنی شما معمولاً به سوءتفاهم منجر نمی‌شوند.",
    "medium": "در برخی موقعیت‌ها احتمال سوءبرداشت وجود دارد.",
    "high": "در چند الگوی کلیدی، احتمال سوءتفاهم بیشتر است.",
    "high_widespread": "در اکثر الگوهای کلیدی، احتمال سوءتفاهم بیشتر است.",
}

SAFETY_PHRASES: tuple[str, ...] = (
    "«این تفاوت‌ها درباره‌ی نیت، علاقه یا ارزش افراد قضاوت نمی‌کنن.»",
    "«الگوهای ذهنی متفاوت می‌تونن همگی سالم باشن.»",
    "«تفاوت در نحوه‌ی فکر کردن ≠ مشکل در رابطه.»",
    "«این نتایج تقریبی‌اند و ممکنه با شرایطی مثل استرس یا خستگی تغییر کنن.»",
)

CONVERSATION_STARTERS: tuple[str, ...] = (
    "«این تفاوت‌ها معمولاً توی چه موقعیت‌هایی بیشتر خودشون رو نشون می‌دن؟»",
    "«وقتی این تفاوت فعال می‌شه، هرکدوم چه حسی پیدا می‌کنیم؟»",
    "«کدوم بخش این مقایسه برات آشناتر بود؟»",
    "«فکر می‌کنی کجاها می‌تونیم همدیگه رو بهتر بفهمیم؟»",
)

# ──────────────────────────────────────────────────────────────────────────────
# Share text
# ──────────────────────────────────────────────────────────────────────────────

SHARE_HEADER: str = "کارت «ذهن ما کنار هم»"
SHARE_NAMES_PREFIX: str = "مقایسه نتایج:"
SHARE_INTRO: str = (
    "این مقایسه نشون می‌ده ذهن ما در موقعیت‌های مختلف چطور کار می‌کنه. "
    "این نتیجه برای درک بهتر طراحی شده، نه تشخیص یا قضاوت."
)
SHARE_SIMILAR_HEADING: str = "شباهت‌ها:"
SHARE_DIFFERENT_HEADING: str = "تفاوت‌ها:"
SHARE_SAFETY_HEADING: str = "توجه مهم:"
SHARE_QUIZ_INVITE: str = (
    "تو هم می‌تونی آزمون «ذهن وراج» رو انجام بدی و نتیجه‌ات رو به اشتراک بذاری:"
)

CTA_TEXT: str = "تکمیل آزمون سنجش نشخوار فکری"
CTA_URL: str = "https://zaya.io/testruminationnewtest"
CTA_INTRO_TEXT: str = (
    "اگر دوست داری الگوی ذهنی خودت رو دقیق‌تر بشناسی،\n"
    "می‌تونی این آزمون سنجش نشخوار فکری رو تکمیل کنی:"
)


def format_invite_text(include_url: bool = False) -> str:
    """CTA intro plus the CTA line; the URL is only appended for text that
    leaves the app (share sheets, clipboard)."""
    cta = f"{CTA_TEXT}: {CTA_URL}" if include_url else CTA_TEXT
    return f"{CTA_INTRO_TEXT}\n{cta}"
