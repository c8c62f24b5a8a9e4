"""
Prompt template and canned roast texts.

The formatting rules in `ROAST_PROMPT_TEMPLATE` are the same markup that
`core.formatting.parse_roast` renders, so the two must change together.
"""

ROAST_PROMPT_TEMPLATE = """roast这位小红书博主（直接roast，不要说任何多余的话，角度需要多样和犀利）:

使用以下 Markdown 格式增强表现力:
1. 【标题】使用【】括起重要段落标题
2. **加粗** 用于强调重要观点

以下是博主内容：

{content}"""

CONNECTIVITY_PROMPT = "你好，这是一个测试."

# Returned by /api/analyze once every generation attempt has failed
ANALYZE_FALLBACK_ROAST = (
    "很抱歉，AI在生成吐槽时遇到了一些问题。\n\n"
    "【关于这位博主】\n"
    "这位小红书博主看起来很有趣，但AI在处理时遇到了一些挑战。\n\n"
    "【吐槽】\n"
    "AI也有出错的时候，就像那些经常\"翻车\"的网红博主一样。不过，与其沮丧，不如再试一次！"
    "毕竟，在互联网的世界里，重新加载页面解决90%的问题。\n\n"
    "希望下次能为您提供一个精彩的吐槽！"
)

# Returned by /api/generate when its single attempt fails
GENERATE_FALLBACK_ROAST = (
    "看起来出了点问题，但别担心！\n\n"
    "就像小红书博主的\"真实生活\"vs镜头前的样子一样，有时候技术也会有落差。请稍后再试！"
)

SYSTEM_ERROR_ROAST_TEMPLATE = (
    "很抱歉，AI在生成吐槽时遇到了一些技术问题。\n\n"
    "【系统消息】\n"
    "处理请求时发生错误，请稍后再试。\n\n"
    "错误详情: {detail}"
)

FETCH_FAILED_MESSAGE = "无法获取小红书内容，请检查链接是否有效"
GENERATION_FAILED_MESSAGE = "多次尝试生成吐槽均失败"
GENERATE_FAILED_MESSAGE = "生成吐槽失败"
INVALID_URL_MESSAGE = "请输入有效的小红书链接"


def build_roast_prompt(content: str, max_chars: int) -> str:
    return ROAST_PROMPT_TEMPLATE.format(content=content[:max_chars])
