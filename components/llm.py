import logging
from typing import List

from langchain_core.messages import AIMessage, HumanMessage
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder
from langchain_openai import ChatOpenAI

TRANSLATE_SYSTEM_PROMPT = (
    "You are a professional English-to-Spanish translator for a healthcare clinic directory. "
    "Translate the following clinic description into natural, clear Spanish. "
    "Return ONLY the translated text, no explanation."
)


def to_messages(history: List[dict]):
    messages = []
    for msg in history:
        content = str(msg.get("content") or "")
        if msg.get("role") == "assistant":
            messages.append(AIMessage(content=content))
        else:
            messages.append(HumanMessage(content=content))
    return messages


class LLM:
    def __init__(self, model_name: str, api_key: str, temperature: float = 0.2, chat_model=None):
        self.model_name = model_name
        self.api_key = api_key
        self.chat_model = chat_model or ChatOpenAI(model=self.model_name, api_key=self.api_key,
                                                   temperature=temperature)

    def chat(self, system_prompt: str, history: List[dict]) -> str:
        prompt = ChatPromptTemplate.from_messages(
            [
                ("system", "{system_prompt}"),
                MessagesPlaceholder(variable_name="messages"),
            ]
        )
        chain = prompt | self.chat_model | StrOutputParser()
        answer = chain.invoke({"system_prompt": system_prompt, "messages": to_messages(history)})
        logging.info("Chat model answered with %d characters", len(answer or ""))
        return (answer or "").strip()

    def translate_to_spanish(self, text: str) -> str:
        prompt = ChatPromptTemplate.from_messages(
            [
                ("system", TRANSLATE_SYSTEM_PROMPT),
                ("human", "{text}"),
            ]
        )
        chain = prompt | self.chat_model | StrOutputParser()
        return (chain.invoke({"text": text}) or "").strip()

    def ping(self) -> str:
        prompt = ChatPromptTemplate.from_messages(
            [("human", "Respond with a short acknowledgement so we can confirm model access.")]
        )
        chain = prompt | self.chat_model | StrOutputParser()
        sample = (chain.invoke({}) or "").strip()
        if not sample:
            raise RuntimeError("Chat model returned an empty response")
        return sample
