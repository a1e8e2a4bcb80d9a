"""Outbound WhatsApp copy (Bahasa Indonesia) and small builders around it."""

from datetime import date, datetime
from typing import Optional

from remindcare.core.clock import to_day_key
from remindcare.domain.workflow import CheckinAnswer, DeliveryStage, VisitCode

# Daily check-in
CHECKIN_POLL_QUESTION = "Sudah minum tablet FE hari ini? 💊😊"
CHECKIN_POLL_OPTIONS = ["Sudah ✅", "Belum ⏳"]

REMINDER_TEMPLATES = [
    "Terima kasih sudah menjaga kesehatan hari ini. Tablet FE bantu tubuh tetap kuat. 💊💪",
    "Semangat ya, Bunda. Konsisten minum tablet FE bikin tubuh lebih bertenaga. ✨💊",
    "Kamu hebat sudah perhatian sama si kecil. Jangan lupa tablet FE ya. 🤰💗",
    "Sedikit konsisten tiap hari = hasil besar. Tetap minum tablet FE ya. 🌟💊",
    "Jaga diri dengan baik, ya. Tablet FE bantu penuhi kebutuhan zat besi. 🩺💊",
    "Semoga harimu lancar. Tablet FE membantu menjaga kesehatan ibu dan bayi. 🌿🤍",
    "Bunda luar biasa! Tablet FE membantu mencegah anemia. 💖💊",
    "Satu tablet FE sehari bantu tubuh tetap fit. 😊💊",
    "Zat besi penting untuk energi harianmu. Jangan lupa tablet FE. 🔋💊",
    "RemindCare selalu dukung kamu. Tetap semangat hari ini. 🤗💊",
]

CHECKIN_ACK = {
    CheckinAnswer.DONE: "Terima kasih. Semoga sehat selalu. 🌼",
    CheckinAnswer.NOT_DONE: "Baik, jangan lupa diminum ya. 💊🙂",
}

# Delivery validation
DELIVERY_POLL_QUESTION = "Apakah Bunda sudah melahirkan? 👶"
DELIVERY_POLL_OPTIONS = ["Sudah melahirkan 👶", "Belum melahirkan ⏳"]

DELIVERY_DELIVERED_ACK = (
    "Selamat atas kelahiran si kecil! 🎉👶\n"
    "Boleh bantu isi data persalinan sebentar ya."
)
DELIVERY_NOT_YET_ACK = "Baik, tetap jaga kesehatan ya. RemindCare akan menanyakan lagi nanti. 🤰💗"
DELIVERY_ALREADY_CONFIRMED = "Data persalinan Bunda sudah tercatat. Terima kasih. 🌼"

# Delivery data collection
DELIVERY_DATA_QUESTIONS = {
    1: "Tanggal persalinan? Format tanggal-bulan-tahun, contoh: 31-01-2025 📅",
    2: "Jam persalinan? (format 24 jam, contoh 14:30) ⏰",
    3: "Tempat persalinan? (contoh: Puskesmas, RS, Bidan praktik mandiri) 🏥",
    4: "Persalinan ditolong oleh siapa? (contoh: Bidan, Dokter) 👩‍⚕️",
}
DELIVERY_DATE_INVALID = "Format tanggal belum sesuai. Contoh: 31-01-2025. 📅"
DELIVERY_DATE_IN_FUTURE = "Tanggal persalinan tidak boleh setelah hari ini. Coba cek lagi ya. 📅"
DELIVERY_DATE_BEFORE_HPHT = "Tanggal persalinan tidak boleh sebelum HPHT. Coba cek lagi ya. 📅"
DELIVERY_TIME_INVALID = "Format jam belum sesuai. Contoh: 14:30. ⏰"
DELIVERY_TIME_IN_FUTURE = "Jam persalinan tidak boleh lebih dari jam sekarang. Coba cek lagi ya. ⏰"
DELIVERY_TEXT_EMPTY = "Aku belum menangkap jawabannya. Bisa diulang? 🙂"

# Postpartum
POSTPARTUM_EDUCATION = (
    "Bunda, masa nifas adalah 6 minggu pertama setelah melahirkan. 🤱\n"
    "Selama masa ini ada jadwal kunjungan ibu nifas (KF) dan bayi baru lahir (KN) "
    "ke fasilitas kesehatan. RemindCare akan mengingatkan setiap jadwalnya ya. 📋"
)

VISIT_EXPLAINERS = {
    VisitCode.KF1: "Kunjungan Nifas 1 (KF1): 6 jam sampai 2 hari setelah melahirkan. Cek perdarahan, tekanan darah, dan menyusui. 🩺",
    VisitCode.KN1: "Kunjungan Neonatal 1 (KN1): 6 sampai 48 jam setelah lahir. Cek kondisi bayi, tali pusat, dan imunisasi HB0. 👶",
    VisitCode.KF2: "Kunjungan Nifas 2 (KF2): hari ke-3 sampai ke-7. Cek pemulihan rahim, luka jahitan, dan ASI. 🩺",
    VisitCode.KN2: "Kunjungan Neonatal 2 (KN2): hari ke-3 sampai ke-7. Cek berat badan, menyusu, dan kuning pada bayi. 👶",
    VisitCode.KF3: "Kunjungan Nifas 3 (KF3): hari ke-8 sampai ke-28. Cek kondisi ibu dan tanda bahaya nifas. 🩺",
    VisitCode.KN3: "Kunjungan Neonatal 3 (KN3): hari ke-8 sampai ke-28. Cek pertumbuhan dan tanda bahaya bayi. 👶",
    VisitCode.KF4: "Kunjungan Nifas 4 (KF4): hari ke-29 sampai ke-42. Konsultasi KB dan pemulihan ibu. 🩺",
}

VISIT_ACK = {
    CheckinAnswer.DONE: "Terima kasih sudah melakukan kunjungan. Sehat selalu untuk Bunda dan si kecil. 🌼",
    CheckinAnswer.NOT_DONE: "Baik, yuk segera jadwalkan kunjungan ke fasilitas kesehatan terdekat ya. 🏥",
}

# Labor-phase education, by gestational week
LABOR_EDUCATION = {
    37: (
        "Bunda sudah masuk minggu ke-37, kehamilan cukup bulan. 🤰\n"
        "Siapkan tas persalinan, buku KIA, dan kendaraan ke fasilitas kesehatan ya. 🎒"
    ),
    38: (
        "Minggu ke-38: kenali tanda persalinan. 🤰\n"
        "Kontraksi teratur makin sering, keluar lendir bercampur darah, atau ketuban pecah. "
        "Segera ke fasilitas kesehatan jika muncul. 🏥"
    ),
    39: (
        "Minggu ke-39: tetap aktif dengan jalan santai dan cukup istirahat. 🚶‍♀️\n"
        "Perhatikan gerakan janin setiap hari ya. 👶"
    ),
    40: (
        "Minggu ke-40: perkiraan hari lahir (HPL) Bunda adalah {edd}. 📅\n"
        "Tidak apa-apa jika persalinan maju atau mundur sedikit. Tetap pantau tanda persalinan ya. 🤍"
    ),
    41: (
        "Minggu ke-41: kehamilan sudah melewati HPL. 🤰\n"
        "Segera periksakan diri ke bidan atau dokter untuk memastikan kondisi Bunda dan janin. 🩺"
    ),
}

DELIVERY_STAGE_INTRO = {
    DeliveryStage.WEEK39_DAILY: (
        "Bunda sudah memasuki minggu ke-39. 🤰\n"
        "Mulai sekarang RemindCare akan menanyakan setiap hari apakah Bunda sudah melahirkan."
    ),
    DeliveryStage.HPL: "Hari ini adalah perkiraan hari lahir (HPL) Bunda: {edd}. 📅",
    DeliveryStage.HPL_PLUS3: (
        "Sudah 3 hari lewat dari HPL ({edd}). 📅\n"
        "Jika belum melahirkan, segera periksakan diri ke fasilitas kesehatan ya. 🏥"
    ),
}

# Commands and onboarding
MENU = (
    "Menu:\n*start* - aktifkan pengingat\n*stop* - hentikan pengingat\n"
    "*ubah jam 17:00* - ganti jam pengingat\n*ubah persalinan* - isi ulang data persalinan\n"
    "*about* - info singkat\n*website* - alamat website\n*delete* - hapus akun"
)
ABOUT = (
    "RemindCare adalah tugas akhir mahasiswa Poltekkes Kemenkes Tasikmalaya jurusan kebidanan (Melva). "
    "Informasi: {phone}."
)
WEBSITE = "Website kami: {url}"
INTRO = (
    "Halo! 👋 Aku RemindCare, bot pengingat tablet FE untuk ibu hamil supaya minum obat tepat waktu. 🤰💊\n\n"
    "Untuk mulai, ketik start ya. ✨\n\n"
    "Cara pakai: jawab pertanyaan, pilih jam pengingat, lalu terima reminder harian. ⏰\n"
    "Baca artikel seputar kehamilan di {url} 📚🌐"
)
FALLBACK = "Aku siap membantu pengingat tablet FE. Ketik menu untuk melihat perintah. 💬📋"
NOTHING_PENDING = "Belum ada polling hari ini. Tunggu pengingat berikutnya ya. ⏳"
ALREADY_RECORDED = "Jawaban Bunda hari ini sudah tercatat. Terima kasih. 🙏"
RATE_LIMITED = "Terlalu banyak pesan. Coba lagi sebentar. ⏳"
NOT_ALLOWED = "Nomor ini belum diizinkan. Hubungi admin. 🚫"
COMPLETED = "Masa pengingat kehamilan sudah selesai. Jika ingin lanjut, balas start. 🎉"

DELETE_CONFIRM = "Untuk menghapus akun, ketik delete sekali lagi."
DELETED = "Akun kamu sudah dihapus. Kalau mau pakai lagi, cukup chat lagi ya."
PAUSED = "Oke, pengingat dihentikan dulu. ⏸️"
RESUMED = "Siap, RemindCare aktif lagi jam {time} WIB. ✅⏰"
TIME_CHANGED = "Jam pengingat diubah ke {time} WIB. ✅⏰"
TIME_CHANGE_INVALID = "Format jam belum sesuai. Contoh: ubah jam 17:00. ⏰"

ONBOARDING_UNCLEAR = "Aku belum menangkap jawabannya. Bisa diulang? 🙂"
ONBOARDING_YES_NO = "Jawab dengan ya atau tidak, ya. 🙏"
ONBOARDING_TIME_INVALID = "Format jam belum sesuai. Contoh: 17:00. ⏰"
ONBOARDING_DATE_INVALID = "Format HPHT belum sesuai. Contoh: 31-01-2024. 📅"
ONBOARDING_DECLINED = "Baik, RemindCare tidak akan mengingatkan dulu. Kalau berubah pikiran, ketik start. 👍"
ONBOARDING_DONE = "Siap! RemindCare akan mengingatkan setiap hari jam {time} WIB. ⏰✨"

ADMIN_ONLY = "Perintah admin hanya untuk admin ya. 🔒"
ADMIN_HELP = (
    "Perintah admin: admin stats, admin allow <wa_id>, admin block <wa_id>, "
    "admin unblock <wa_id>, admin purge logs <hari>. 🛠️"
)
ADMIN_TARGET_FORMAT = "Format: admin allow|block|unblock <wa_id>. ✍️"
ADMIN_UNKNOWN = "Perintah admin tidak dikenali. Ketik: admin help. 🤔"
ADMIN_STATS = "Stat user: total {total}, aktif {active}, allowed {allowed}, blocked {blocked}. 📊"
ADMIN_DONE = "OK {action} {wa_id}. ✅"
ADMIN_PURGED = "Log dibersihkan: {removed} baris (retensi {days} hari). 🧹"

MONTHS_ID = [
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
]


def display_name(name: Optional[str]) -> str:
    trimmed = (name or "").strip()
    return trimmed or "Bunda"


def format_date_id(value: date) -> str:
    """date(2024, 10, 7) -> '7 Oktober 2024'."""
    return f"{value.day} {MONTHS_ID[value.month - 1]} {value.year}"


def time_greeting(now: datetime) -> str:
    hour = now.hour
    if 4 <= hour < 11:
        return "Selamat pagi ☀️"
    if 11 <= hour < 15:
        return "Selamat siang 🌤️"
    if 15 <= hour < 18:
        return "Selamat sore 🌇"
    return "Selamat malam 🌙"


def pick_reminder_template(wa_id: str, day_key: str) -> str:
    """Stable per subject per day, so a retried intro reads the same."""
    key = f"{wa_id}-{day_key}"
    value = 0
    for char in key:
        value = (value * 31 + ord(char)) % 2147483647
    return REMINDER_TEMPLATES[value % len(REMINDER_TEMPLATES)]


def build_reminder_message(wa_id: str, name: Optional[str], now: datetime, website: str) -> str:
    template = pick_reminder_template(wa_id, to_day_key(now))
    return (
        f"{time_greeting(now)}, {display_name(name)}!\n{template}\n"
        f"Baca artikel bermanfaat di {website} 📚🌐"
    )


def build_labor_education(week: int, edd: date) -> str:
    return LABOR_EDUCATION[week].format(edd=format_date_id(edd))


def build_delivery_intro(stage: DeliveryStage, edd: date) -> str:
    return DELIVERY_STAGE_INTRO[stage].format(edd=format_date_id(edd))


def build_visit_question(code: VisitCode) -> str:
    return f"Sudah melakukan kunjungan {code.value}? 🏥"


def build_delivery_summary(
    delivery_date: date, delivery_time: str, place: Optional[str], attendant: Optional[str]
) -> str:
    return (
        "Data persalinan tersimpan. ✅\n"
        f"Tanggal: {format_date_id(delivery_date)}\n"
        f"Jam: {delivery_time} WIB\n"
        f"Tempat: {place or '-'}\n"
        f"Penolong: {attendant or '-'}\n\n"
        "RemindCare akan mengingatkan jadwal kunjungan nifas dan bayi baru lahir. 🤱"
    )
